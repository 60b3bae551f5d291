"""
Extrator de campos fiscais de NF-e (modelo 55/65) em XML.

Estrutura esperada (nomes já normalizados pelo xml_tree):
    <nfeproc>            # envelope de processamento (opcional)
        <nfe>
            <infnfe id="NFe...">
                <ide/> <emit/> <dest/> <det/>... <total/> <transp/> <cobr/> <infadic/>
            </infnfe>
        </nfe>
    </nfeproc>

CFOP e CST vêm apenas do PRIMEIRO item (det). Notas com vários itens são
resumidas pelo primeiro; é uma simplificação deliberada.
"""
import logging
from typing import Optional

from ..errors import ExtractionError, MalformedStructure
from ..schema.models import FiscalRecord
from .formatters import clean_digits, format_date, money, weight
from .xml_tree import XmlNode, parse_xml

logger = logging.getLogger(__name__)

ACCESS_KEY_PREFIX = "NFe"

# Grupos de ICMS por regime/cenário tributário (tags já normalizadas)
ICMS_GROUPS = (
    "icms00", "icms02", "icms10", "icms15", "icms20", "icms30", "icms40",
    "icms51", "icms53", "icms60", "icms61", "icms70", "icms90",
    "icmspart", "icmsst",
    "icmssn101", "icmssn102", "icmssn201", "icmssn202", "icmssn500", "icmssn900",
)

# total/icmstot -> campo do registro
MONEY_TOTALS = {
    "valor_total": "vnf",
    "valor_icms": "vicms",
    "valor_pis": "vpis",
    "valor_cofins": "vcofins",
    "valor_ipi": "vipi",
    "valor_frete": "vfrete",
    "valor_seguro": "vseg",
    "valor_desconto": "vdesc",
    "valor_outras_despesas": "voutro",
    "base_calculo_icms": "vbc",
    "base_calculo_icms_st": "vbcst",
    "valor_icms_st": "vst",
    "valor_produtos": "vprod",
}


def locate_invoice(root: XmlNode) -> XmlNode:
    """
    Aceita <nfeProc><NFe>...</NFe></nfeProc> ou <NFe> direto.

    Raises:
        MalformedStructure: nenhum dos dois formatos
    """
    if root.name == "nfeproc":
        nfe = root.child("nfe")
    elif root.name == "nfe":
        nfe = root
    else:
        nfe = None

    if nfe is None:
        raise MalformedStructure("Estrutura XML inválida: tag <NFe> não encontrada")

    inf_nfe = nfe.child("infnfe")
    if inf_nfe is None:
        raise MalformedStructure("Estrutura XML inválida: tag <infNFe> não encontrada")
    return inf_nfe


def access_key(inf_nfe: XmlNode) -> str:
    identifier = inf_nfe.attr("id")
    if identifier.startswith(ACCESS_KEY_PREFIX):
        return identifier[len(ACCESS_KEY_PREFIX):]
    return identifier


def resolve_cst(det: Optional[XmlNode]) -> str:
    """
    CST do grupo ICMS do item. O nome do grupo muda conforme o cenário
    (ICMS00, ICMS40, ICMSSN102...). Regime simplificado usa CSOSN no lugar de CST.
    """
    if det is None:
        return ""
    icms = det.find("imposto", "icms")
    if icms is None:
        return ""

    group = next((c for c in icms.children if c.name in ICMS_GROUPS), None)
    if group is None:
        # grupo desconhecido de versão futura do leiaute
        group = next((c for c in icms.children if c.name.startswith("icms")), None)
    if group is None:
        return ""

    return group.first_text("cst", "csosn")


def format_address(ender: Optional[XmlNode]) -> str:
    if ender is None:
        return ""
    parts = [ender.text_at("xlgr"), ender.text_at("nro"), ender.text_at("xbairro")]
    return " ".join(p for p in parts if p)


def _due_date(inf_nfe: XmlNode) -> str:
    raw = inf_nfe.text_at("ide", "dvenct")
    if not raw:
        raw = inf_nfe.text_at("cobr", "dup", "dvenc")
    return format_date(raw)


def _build_record(inf_nfe: XmlNode) -> FiscalRecord:
    ide = inf_nfe.child("ide")
    emit = inf_nfe.child("emit")
    dest = inf_nfe.child("dest")
    det = inf_nfe.child("det")
    total = inf_nfe.find("total", "icmstot")
    transp = inf_nfe.child("transp")
    vol = transp.child("vol") if transp is not None else None
    inf_adic = inf_nfe.child("infadic")

    ender_emit = emit.child("enderemit") if emit is not None else None
    ender_dest = dest.child("enderdest") if dest is not None else None

    def text(node: Optional[XmlNode], *path: str) -> str:
        return node.text_at(*path) if node is not None else ""

    monetary = {
        field_name: money(text(total, tag) or "0", field_name)
        for field_name, tag in MONEY_TOTALS.items()
    }

    ie_emitente = text(emit, "ie")

    return FiscalRecord(
        numero_nf=text(ide, "nnf"),
        chave_nf=access_key(inf_nfe),
        modelo=text(ide, "mod"),
        serie=text(ide, "serie"),
        cfop=text(det, "prod", "cfop"),
        cst=resolve_cst(det),
        natureza_operacao=text(ide, "natop"),
        finalidade_emissao=text(ide, "finnfe"),
        consumidor_final=text(ide, "indfinal"),
        presenca_comprador=text(ide, "indpres"),
        nome_emitente=text(emit, "xnome"),
        cnpj_cpf_emitente=emit.first_text("cnpj", "cpf") if emit is not None else "",
        ie_emitente=ie_emitente,
        ie_emissor=ie_emitente,
        municipio_emitente=text(ender_emit, "xmun"),
        uf_emitente=text(ender_emit, "uf"),
        cep_emitente=clean_digits(text(ender_emit, "cep")),
        endereco_emitente=format_address(ender_emit),
        nome_destinatario=text(dest, "xnome"),
        cnpj_cpf_destinatario=dest.first_text("cnpj", "cpf") if dest is not None else "",
        municipio_destinatario=text(ender_dest, "xmun"),
        uf_destinatario=text(ender_dest, "uf"),
        cep_destinatario=clean_digits(text(ender_dest, "cep")),
        endereco_destinatario=format_address(ender_dest),
        peso_liquido=weight(
            (vol.first_text("pesol", "pesoliq") if vol is not None else "") or "0",
            "peso_liquido",
        ),
        peso_bruto=weight(
            (vol.first_text("pesob", "pesobruto") if vol is not None else "") or "0",
            "peso_bruto",
        ),
        transportadora=text(transp, "transporta", "xnome"),
        placa_veiculo=text(transp, "veictransp", "placa"),
        data_emissao=format_date(ide.first_text("dhemi", "demi") if ide is not None else ""),
        data_vencimento=_due_date(inf_nfe),
        observacoes=text(inf_adic, "infcpl"),
        informacoes_adicionais=text(inf_adic, "infadfisco"),
        **monetary,
    )


def extract_fiscal_record(xml_bytes: bytes, file_name: str) -> FiscalRecord:
    """
    Extrai um FiscalRecord de um XML de NF-e.

    Raises:
        MalformedStructure: XML sem <NFe>/<infNFe>
        ExtractionError: qualquer outra falha (XML mal formado, valor inválido)
    """
    try:
        root = parse_xml(xml_bytes)
        inf_nfe = locate_invoice(root)
        record = _build_record(inf_nfe)
    except MalformedStructure as e:
        raise MalformedStructure(f"Erro ao processar XML ({file_name}): {e.message}", file_name=file_name) from e
    except ExtractionError as e:
        raise ExtractionError(f"Erro ao processar XML ({file_name}): {e.message}", file_name=file_name) from e
    except Exception as e:
        raise ExtractionError(f"Erro ao processar XML ({file_name}): {e}", file_name=file_name) from e

    logger.debug("NF %s extraída de %s", record.numero_nf, file_name)
    return record
