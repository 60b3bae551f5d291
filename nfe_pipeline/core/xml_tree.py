"""
Árvore intermediária normalizada para navegação em XML de NF-e.

Nomes de tags e atributos são reduzidos a minúsculas, sem namespace e sem
acentos, para que variações de caixa entre emissores não causem falhas de
busca. Todos os acessores devolvem None/"" quando o caminho não existe,
nunca lançam.
"""
import unicodedata
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from lxml import etree

from ..errors import ExtractionError

_PARSER_OPTIONS = dict(
    resolve_entities=False,
    no_network=True,
    huge_tree=False,
    remove_comments=True,
    remove_pis=True,
)


def normalize_name(name: str) -> str:
    """'{ns}infNFe' -> 'infnfe', 'Endereço' -> 'endereco'."""
    local = etree.QName(name).localname if name.startswith("{") else name
    decomposed = unicodedata.normalize("NFKD", local)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower()


def normalize_value(text: Optional[str]) -> str:
    """Trim + colapsa espaços internos"""
    if not text:
        return ""
    return " ".join(text.split())


@dataclass(frozen=True)
class XmlNode:
    name: str
    text: str = ""
    attrs: Dict[str, str] = field(default_factory=dict)
    children: Tuple["XmlNode", ...] = ()

    def child(self, name: str) -> Optional["XmlNode"]:
        """Primeiro filho com o nome normalizado, ou None."""
        for node in self.children:
            if node.name == name:
                return node
        return None

    def find(self, *path: str) -> Optional["XmlNode"]:
        node: Optional[XmlNode] = self
        for name in path:
            if node is None:
                return None
            node = node.child(name)
        return node

    def text_at(self, *path: str, default: str = "") -> str:
        node = self.find(*path)
        if node is None or not node.text:
            return default
        return node.text

    def first_text(self, *candidates: str, default: str = "") -> str:
        """Texto do primeiro filho direto presente entre os candidatos."""
        for name in candidates:
            value = self.text_at(name)
            if value:
                return value
        return default

    def attr(self, name: str, default: str = "") -> str:
        return self.attrs.get(name, default)


def _build(element) -> XmlNode:
    children = tuple(
        _build(child) for child in element
        if isinstance(child.tag, str)
    )
    attrs = {normalize_name(k): normalize_value(v) for k, v in element.attrib.items()}
    return XmlNode(
        name=normalize_name(element.tag),
        text=normalize_value(element.text),
        attrs=attrs,
        children=children,
    )


def parse_xml(xml_bytes: bytes) -> XmlNode:
    """
    Converte bytes em XmlNode.

    Raises:
        ExtractionError: documento vazio ou mal formado
    """
    if not xml_bytes or not xml_bytes.strip():
        raise ExtractionError("Documento XML vazio")

    parser = etree.XMLParser(**_PARSER_OPTIONS)
    try:
        root = etree.fromstring(xml_bytes, parser=parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise ExtractionError(f"XML mal formado: {e}") from e

    if root is None:
        raise ExtractionError("Documento XML vazio")

    return _build(root)
