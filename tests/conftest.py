import pytest

CHAVE_EXEMPLO = "35200114200166000119550010000123451234567890"

ICMS00 = "<ICMS><ICMS00><orig>0</orig><CST>00</CST><vBC>1000.00</vBC><vICMS>180.00</vICMS></ICMS00></ICMS>"
ICMSSN102 = "<ICMS><ICMSSN102><orig>0</orig><CSOSN>102</CSOSN></ICMSSN102></ICMS>"

NFE_BODY = """<NFe xmlns="http://www.portalfiscal.inf.br/nfe">
    <infNFe Id="NFe{chave}" versao="4.00">
      <ide>
        <cUF>35</cUF>
        <natOp>VENDA DE MERCADORIA</natOp>
        <mod>55</mod>
        <serie>1</serie>
        <nNF>{numero}</nNF>
        <dhEmi>2024-01-15T10:30:00-03:00</dhEmi>
        <finNFe>1</finNFe>
        <indFinal>0</indFinal>
        <indPres>1</indPres>
      </ide>
      <emit>
        <CNPJ>14200166000119</CNPJ>
        <xNome>EMPRESA EMITENTE LTDA</xNome>
        <enderEmit>
          <xLgr>Rua das Flores</xLgr>
          <nro>100</nro>
          <xBairro>Centro</xBairro>
          <xMun>São Paulo</xMun>
          <UF>SP</UF>
          <CEP>01001-000</CEP>
        </enderEmit>
        <IE>123456789110</IE>
      </emit>
      <dest>
        <CPF>12345678909</CPF>
        <xNome>CLIENTE DESTINATARIO</xNome>
        <enderDest>
          <xLgr>Av Brasil</xLgr>
          <nro>2000</nro>
          <xBairro>Jardim</xBairro>
          <xMun>Campinas</xMun>
          <UF>SP</UF>
          <CEP>13010000</CEP>
        </enderDest>
      </dest>
      <det nItem="1">
        <prod><cProd>001</cProd><xProd>PRODUTO A</xProd><CFOP>5102</CFOP></prod>
        <imposto>{icms}</imposto>
      </det>
      <det nItem="2">
        <prod><cProd>002</cProd><xProd>PRODUTO B</xProd><CFOP>6102</CFOP></prod>
        <imposto><ICMS><ICMS40><orig>0</orig><CST>40</CST></ICMS40></ICMS></imposto>
      </det>
      <total>
        <ICMSTot>
          <vBC>1000.00</vBC>
          <vICMS>180.00</vICMS>
          <vBCST>0</vBCST>
          <vST>0.00</vST>
          <vProd>1200.00</vProd>
          <vFrete>15.5</vFrete>
          <vSeg>0</vSeg>
          <vDesc>0.00</vDesc>
          <vIPI>10</vIPI>
          <vPIS>7.8</vPIS>
          <vCOFINS>36</vCOFINS>
          <vOutro>0</vOutro>
          <vNF>{valor_total}</vNF>
        </ICMSTot>
      </total>
      <transp>
        <modFrete>0</modFrete>
        <transporta><xNome>TRANSPORTES RAPIDOS</xNome></transporta>
        <veicTransp><placa>ABC1D23</placa><UF>SP</UF></veicTransp>
        <vol><qVol>2</qVol><pesoL>10.5</pesoL><pesoB>11.25</pesoB></vol>
      </transp>
      <cobr>
        <dup><nDup>001</nDup><dVenc>2024-02-15</dVenc><vDup>1234.50</vDup></dup>
      </cobr>
      <infAdic>
        <infAdFisco>Info fisco</infAdFisco>
        <infCpl>Pedido 4587</infCpl>
      </infAdic>
    </infNFe>
  </NFe>"""


def build_nfe_xml(
    numero: str = "000123",
    chave: str = CHAVE_EXEMPLO,
    valor_total: str = "1234.5",
    icms: str = ICMS00,
    envelope: bool = True,
) -> bytes:
    body = NFE_BODY.format(numero=numero, chave=chave, valor_total=valor_total, icms=icms)
    if envelope:
        xml = (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<nfeProc xmlns="http://www.portalfiscal.inf.br/nfe" versao="4.00">\n'
            f"  {body}\n"
            f'  <protNFe versao="4.00"><infProt><chNFe>{chave}</chNFe></infProt></protNFe>\n'
            "</nfeProc>"
        )
    else:
        xml = '<?xml version="1.0" encoding="UTF-8"?>\n' + body
    return xml.encode("utf-8")


@pytest.fixture
def chave_exemplo():
    return CHAVE_EXEMPLO


@pytest.fixture
def nfe_xml():
    """Factory de XML de NF-e (envelope nfeProc por padrão)."""
    return build_nfe_xml


@pytest.fixture
def nfe_bytes():
    return build_nfe_xml()


@pytest.fixture
def broken_xml():
    return b"<nfeProc><NFe><infNFe Id='NFe123'><ide><nNF>1</nNF></ide>"


@pytest.fixture
def batch_files(nfe_xml, broken_xml):
    """Três arquivos, o segundo não é XML bem formado."""
    return [
        ("nota1.xml", nfe_xml(numero="000123")),
        ("nota2.xml", broken_xml),
        ("nota3.xml", nfe_xml(numero="456", chave="35200114200166000119550010000004561000004560")),
    ]


@pytest.fixture
def icms_simples():
    """Grupo ICMS do Simples Nacional (CSOSN, sem CST)."""
    return ICMSSN102
