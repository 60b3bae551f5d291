from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldKey(str, Enum): ##     Chaves fechadas de FiscalRecord usadas pelos templates de exportação
    NUMERO_NF = "numero_nf"
    CHAVE_NF = "chave_nf"
    CFOP = "cfop"
    CST = "cst"
    NOME_EMITENTE = "nome_emitente"
    CNPJ_CPF_EMITENTE = "cnpj_cpf_emitente"
    NOME_DESTINATARIO = "nome_destinatario"
    CNPJ_CPF_DESTINATARIO = "cnpj_cpf_destinatario"
    VALOR_TOTAL = "valor_total"
    VALOR_ICMS = "valor_icms"
    VALOR_PIS = "valor_pis"
    VALOR_COFINS = "valor_cofins"
    VALOR_IPI = "valor_ipi"
    PESO_LIQUIDO = "peso_liquido"
    PESO_BRUTO = "peso_bruto"
    TRANSPORTADORA = "transportadora"
    PLACA_VEICULO = "placa_veiculo"
    IE_EMISSOR = "ie_emissor"
    IE_EMITENTE = "ie_emitente"
    DATA_EMISSAO = "data_emissao"
    DATA_VENCIMENTO = "data_vencimento"
    NATUREZA_OPERACAO = "natureza_operacao"
    MODELO = "modelo"
    SERIE = "serie"
    FINALIDADE_EMISSAO = "finalidade_emissao"
    CONSUMIDOR_FINAL = "consumidor_final"
    PRESENCA_COMPRADOR = "presenca_comprador"
    MUNICIPIO_EMITENTE = "municipio_emitente"
    UF_EMITENTE = "uf_emitente"
    CEP_EMITENTE = "cep_emitente"
    ENDERECO_EMITENTE = "endereco_emitente"
    MUNICIPIO_DESTINATARIO = "municipio_destinatario"
    UF_DESTINATARIO = "uf_destinatario"
    CEP_DESTINATARIO = "cep_destinatario"
    ENDERECO_DESTINATARIO = "endereco_destinatario"
    VALOR_FRETE = "valor_frete"
    VALOR_SEGURO = "valor_seguro"
    VALOR_DESCONTO = "valor_desconto"
    VALOR_OUTRAS_DESPESAS = "valor_outras_despesas"
    BASE_CALCULO_ICMS = "base_calculo_icms"
    BASE_CALCULO_ICMS_ST = "base_calculo_icms_st"
    VALOR_ICMS_ST = "valor_icms_st"
    VALOR_PRODUTOS = "valor_produtos"
    OBSERVACOES = "observacoes"
    INFORMACOES_ADICIONAIS = "informacoes_adicionais"


class FiscalRecord(BaseModel): ##     Contrato entre o extrator e a exportação. Valores monetários são strings decimais
    model_config = ConfigDict(frozen=True)

    # identificação (sempre texto, nunca numérico)
    numero_nf: str = ""
    chave_nf: str = ""
    modelo: str = ""
    serie: str = ""

    cfop: str = ""
    cst: str = ""
    natureza_operacao: str = ""
    finalidade_emissao: str = ""
    consumidor_final: str = ""
    presenca_comprador: str = ""

    nome_emitente: str = ""
    cnpj_cpf_emitente: str = ""
    ie_emitente: str = ""
    ie_emissor: str = ""
    municipio_emitente: str = ""
    uf_emitente: str = ""
    cep_emitente: str = ""
    endereco_emitente: str = ""

    nome_destinatario: str = ""
    cnpj_cpf_destinatario: str = ""
    municipio_destinatario: str = ""
    uf_destinatario: str = ""
    cep_destinatario: str = ""
    endereco_destinatario: str = ""

    # escala 2
    valor_total: str = "0.00"
    valor_icms: str = "0.00"
    valor_pis: str = "0.00"
    valor_cofins: str = "0.00"
    valor_ipi: str = "0.00"
    valor_frete: str = "0.00"
    valor_seguro: str = "0.00"
    valor_desconto: str = "0.00"
    valor_outras_despesas: str = "0.00"
    base_calculo_icms: str = "0.00"
    base_calculo_icms_st: str = "0.00"
    valor_icms_st: str = "0.00"
    valor_produtos: str = "0.00"

    # escala 3
    peso_liquido: str = "0.000"
    peso_bruto: str = "0.000"

    transportadora: str = ""
    placa_veiculo: str = ""

    data_emissao: str = ""
    data_vencimento: str = ""

    observacoes: str = ""
    informacoes_adicionais: str = ""


class ProcessingOutcome(BaseModel): ##     Resultado imutável de um arquivo dentro do lote
    model_config = ConfigDict(frozen=True)

    file_index: int
    file_name: str
    status: Literal["processed", "error"]
    record: Optional[FiscalRecord] = None
    error_message: Optional[str] = None

    @property
    def numero_nf(self) -> str:
        return self.record.numero_nf if self.record else ""

    @property
    def chave_nf(self) -> str:
        return self.record.chave_nf if self.record else ""


ColumnFormat = Literal["text", "currency", "number", "date"]


class ColumnSpec(BaseModel): ##     Coluna resolvida contra o catálogo
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    source_key: FieldKey
    width: Optional[int] = None
    format: ColumnFormat = "text"
    required: bool = False


class ColumnRequest(BaseModel): ##     Coluna pedida pelo usuário. Só rótulo e largura podem ser sobrescritos
    id: str
    label: Optional[str] = None
    width: Optional[int] = None


class Template(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = "default"
    name: str = "Padrão"
    description: str = ""
    columns: List[ColumnSpec] = Field(default_factory=list)

    @field_validator("columns")
    @classmethod
    def validate_unique_ids(cls, v: List[ColumnSpec]) -> List[ColumnSpec]:
        ids = [c.id for c in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Template com colunas duplicadas")
        return v
