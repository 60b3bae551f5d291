"""
Catálogo de colunas e resolução de templates de exportação.

Política para ids desconhecidos: "drop" (padrão) descarta em silêncio,
"reject" levanta InvalidTemplate. Colunas obrigatórias ausentes são
anexadas ao final na ordem do catálogo.
"""
import logging
from operator import attrgetter
from typing import Callable, Dict, List, Literal, Optional, Sequence, Union

from nfe_config import settings

from ..errors import InvalidTemplate
from ..schema.models import ColumnRequest, ColumnSpec, FieldKey, FiscalRecord, Template

logger = logging.getLogger(__name__)

MIN_WIDTH = 1
MAX_WIDTH = 255

# Colunas forçadas a texto na planilha, independente do formato configurado
TEXT_FORCED_KEYS = frozenset({FieldKey.NUMERO_NF, FieldKey.CHAVE_NF})
WEIGHT_KEYS = frozenset({FieldKey.PESO_LIQUIDO, FieldKey.PESO_BRUTO})


def _col(key: FieldKey, label: str, fmt: str = "text", required: bool = False) -> ColumnSpec:
    return ColumnSpec(id=key.value, label=label, source_key=key, format=fmt, required=required)


COLUMN_CATALOG: List[ColumnSpec] = [
    _col(FieldKey.NUMERO_NF, "Número NF", required=True),
    _col(FieldKey.CHAVE_NF, "Chave NF", required=True),
    _col(FieldKey.CFOP, "CFOP"),
    _col(FieldKey.CST, "CST"),
    _col(FieldKey.NOME_EMITENTE, "Nome Emitente"),
    _col(FieldKey.CNPJ_CPF_EMITENTE, "CNPJ/CPF Emitente"),
    _col(FieldKey.NOME_DESTINATARIO, "Nome Destinatário"),
    _col(FieldKey.CNPJ_CPF_DESTINATARIO, "CNPJ/CPF Destinatário"),
    _col(FieldKey.VALOR_TOTAL, "Valor Total", "currency"),
    _col(FieldKey.VALOR_ICMS, "Valor ICMS", "currency"),
    _col(FieldKey.VALOR_PIS, "Valor PIS", "currency"),
    _col(FieldKey.VALOR_COFINS, "Valor COFINS", "currency"),
    _col(FieldKey.VALOR_IPI, "Valor IPI", "currency"),
    _col(FieldKey.PESO_LIQUIDO, "Peso Líquido", "number"),
    _col(FieldKey.PESO_BRUTO, "Peso Bruto", "number"),
    _col(FieldKey.TRANSPORTADORA, "Transportadora"),
    _col(FieldKey.PLACA_VEICULO, "Placa Veículo"),
    _col(FieldKey.IE_EMISSOR, "IE Emissor"),
    _col(FieldKey.IE_EMITENTE, "IE Emitente"),
    # campos adicionais
    _col(FieldKey.DATA_EMISSAO, "Data Emissão", "date"),
    _col(FieldKey.DATA_VENCIMENTO, "Data Vencimento", "date"),
    _col(FieldKey.NATUREZA_OPERACAO, "Natureza Operação"),
    _col(FieldKey.MODELO, "Modelo"),
    _col(FieldKey.SERIE, "Série"),
    _col(FieldKey.FINALIDADE_EMISSAO, "Finalidade Emissão"),
    _col(FieldKey.CONSUMIDOR_FINAL, "Consumidor Final"),
    _col(FieldKey.PRESENCA_COMPRADOR, "Presença Comprador"),
    _col(FieldKey.MUNICIPIO_EMITENTE, "Município Emitente"),
    _col(FieldKey.UF_EMITENTE, "UF Emitente"),
    _col(FieldKey.CEP_EMITENTE, "CEP Emitente"),
    _col(FieldKey.ENDERECO_EMITENTE, "Endereço Emitente"),
    _col(FieldKey.MUNICIPIO_DESTINATARIO, "Município Destinatário"),
    _col(FieldKey.UF_DESTINATARIO, "UF Destinatário"),
    _col(FieldKey.CEP_DESTINATARIO, "CEP Destinatário"),
    _col(FieldKey.ENDERECO_DESTINATARIO, "Endereço Destinatário"),
    _col(FieldKey.VALOR_FRETE, "Valor Frete", "currency"),
    _col(FieldKey.VALOR_SEGURO, "Valor Seguro", "currency"),
    _col(FieldKey.VALOR_DESCONTO, "Valor Desconto", "currency"),
    _col(FieldKey.VALOR_OUTRAS_DESPESAS, "Valor Outras Despesas", "currency"),
    _col(FieldKey.BASE_CALCULO_ICMS, "Base Cálculo ICMS", "currency"),
    _col(FieldKey.BASE_CALCULO_ICMS_ST, "Base Cálculo ICMS ST", "currency"),
    _col(FieldKey.VALOR_ICMS_ST, "Valor ICMS ST", "currency"),
    _col(FieldKey.VALOR_PRODUTOS, "Valor Produtos", "currency"),
    _col(FieldKey.OBSERVACOES, "Observações"),
    _col(FieldKey.INFORMACOES_ADICIONAIS, "Informações Adicionais"),
]

# Tabela fechada FieldKey -> valor da célula, montada uma única vez
FIELD_ACCESSORS: Dict[FieldKey, Callable[[FiscalRecord], str]] = {
    key: attrgetter(key.value) for key in FieldKey
}

RequestedColumn = Union[str, ColumnRequest, ColumnSpec]


def cell_value(record: FiscalRecord, key: FieldKey) -> str:
    return FIELD_ACCESSORS[key](record)


def _append_required(columns: List[ColumnSpec], catalog: Sequence[ColumnSpec]) -> List[ColumnSpec]:
    present = {c.id for c in columns}
    missing = [c for c in catalog if c.required and c.id not in present]
    if missing:
        logger.info("Colunas obrigatórias anexadas ao template: %s", [c.id for c in missing])
    return columns + missing


def default_template(
    catalog: Sequence[ColumnSpec] = COLUMN_CATALOG,
    size: Optional[int] = None,
) -> Template:
    """Primeiras `size` colunas canônicas do catálogo (DEFAULT_TEMPLATE_SIZE quando omitido)."""
    if size is None:
        size = settings.DEFAULT_TEMPLATE_SIZE
    columns = _append_required(list(catalog[:size]), catalog)
    return Template(
        id="default",
        name="Padrão",
        description="Template padrão com campos essenciais",
        columns=columns,
    )


def _split_request(item: RequestedColumn) -> tuple:
    if isinstance(item, str):
        return item, None, None
    return item.id, item.label, item.width


def _apply_overrides(base: ColumnSpec, label: Optional[str], width: Optional[int]) -> ColumnSpec:
    updates = {}
    if label is not None:
        if not label.strip():
            raise InvalidTemplate(f"Rótulo vazio para a coluna '{base.id}'")
        updates["label"] = label.strip()
    if width is not None:
        if not (MIN_WIDTH <= width <= MAX_WIDTH):
            raise InvalidTemplate(
                f"Largura inválida para a coluna '{base.id}': {width} (permitido {MIN_WIDTH}-{MAX_WIDTH})"
            )
        updates["width"] = width
    return base.model_copy(update=updates) if updates else base


def resolve_template(
    requested: Optional[Sequence[RequestedColumn]],
    catalog: Sequence[ColumnSpec] = COLUMN_CATALOG,
    name: str = "Personalizado",
    unknown_policy: Literal["drop", "reject"] = "drop",
    default_size: Optional[int] = None,
) -> Template:
    """
    Resolve a lista pedida pelo usuário contra o catálogo.

    1. ids desconhecidos: descartados ou rejeitados conforme a política
    2. ids duplicados: vale a primeira ocorrência, ordem do pedido preservada
    3. obrigatórias ausentes: anexadas ao final, na ordem do catálogo
    4. nada resolvível: template padrão

    Raises:
        InvalidTemplate: política "reject" com ids desconhecidos, rótulo vazio ou largura fora da faixa
    """
    by_id = {c.id: c for c in catalog}

    columns: List[ColumnSpec] = []
    seen = set()
    unknown: List[str] = []

    for item in requested or []:
        column_id, label, width = _split_request(item)
        base = by_id.get(column_id)
        if base is None:
            unknown.append(column_id)
            continue
        if column_id in seen:
            continue
        seen.add(column_id)
        columns.append(_apply_overrides(base, label, width))

    if unknown:
        if unknown_policy == "reject":
            raise InvalidTemplate(f"Colunas desconhecidas no template: {', '.join(unknown)}")
        logger.debug("Colunas desconhecidas descartadas: %s", unknown)

    if not columns:
        return default_template(catalog, default_size)

    return Template(
        id="custom",
        name=name,
        description="Template personalizado",
        columns=_append_required(columns, catalog),
    )
