"""
Parsing of PayHOST SingleFollowUpResponse envelopes.

PayHOST answers with prefixed tags (``ns2:``, ``SOAP-ENV:``). Those prefixes
are collapsed into the tag names before parsing, e.g.
``<ns2:Status>`` becomes ``<ns2Status>``, so the body can be walked as a
plain tree of dicts and lists. Fields are then looked up by local name with
any of the collapsed prefixes in front.
"""

import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, Optional, Set, Union

from app.core.exceptions import MalformedResponseError
from app.schemas.paygate import ParsedStatus, QueryStatus
import logging

logger = logging.getLogger(__name__)

_PREFIXED_TAG = re.compile(r"(</?)([A-Za-z_][\w.-]*):([A-Za-z_][\w.-]*)")

ATTRIBUTES_KEY = "@attributes"
TEXT_KEY = "#text"

# QueryStatus field -> local element name inside <Status>
STATUS_FIELDS = {
    "transaction_status_description": "TransactionStatusDescription",
    "result_code": "ResultCode",
    "result_description": "ResultDescription",
    "pay_request_id": "PayRequestId",
    "transaction_id": "TransactionId",
    "reference": "Reference",
    "status_name": "StatusName",
    "auth_code": "AuthCode",
    "currency": "Currency",
    "amount": "Amount",
}

STATUS_PATH = ("SingleFollowUpResponse", "QueryResponse", "Status")
STATUS_CODE_FIELD = "TransactionStatusCode"


def _local_name(tag: str) -> str:
    # ElementTree reports default-namespaced tags as "{uri}Name"
    return tag.rsplit("}", 1)[-1]


def _snippet(text: str, limit: int = 200) -> str:
    return text[:limit].strip()


def collapsed_prefixes(text: str) -> Set[str]:
    """Namespace prefixes that normalize() folds into tag names."""
    return {match.group(2) for match in _PREFIXED_TAG.finditer(text)}


def response_prefixes(text: str, body: Dict[str, Any]) -> Set[str]:
    """Collapsed prefixes, plus any recovered from input that arrived already collapsed."""
    prefixes = collapsed_prefixes(text)
    for key in body:
        for name in (STATUS_PATH[0], "Fault"):
            if key.endswith(name) and key != name:
                prefixes.add(key[: -len(name)])
    return prefixes


def flatten_element(element: ET.Element) -> Any:
    """
    Convert an element into nested dicts/lists with text leaves.

    Repeated sibling tags become lists, attributes go under "@attributes".
    """
    children = list(element)
    attributes = {_local_name(k): v for k, v in element.attrib.items()}
    text = (element.text or "").strip()

    if not children:
        if attributes:
            return {ATTRIBUTES_KEY: attributes, TEXT_KEY: text}
        return text

    result: Dict[str, Any] = {}
    if attributes:
        result[ATTRIBUTES_KEY] = attributes

    for child in children:
        key = _local_name(child.tag)
        value = flatten_element(child)
        if key in result:
            if not isinstance(result[key], list):
                result[key] = [result[key]]
            result[key].append(value)
        else:
            result[key] = value

    return result


def find_field(node: Any, name: str, prefixes: Iterable[str] = ()) -> Optional[Any]:
    """Look up `name` in a flattened node, with or without a collapsed prefix."""
    if isinstance(node, list):
        node = node[0] if node else None
    if not isinstance(node, dict):
        return None

    if name in node:
        return node[name]
    for prefix in prefixes:
        if prefix + name in node:
            return node[prefix + name]
    return None


class ResponseParser:
    """Turns a raw PayHOST response into a ParsedStatus"""

    @staticmethod
    def normalize(text: str) -> str:
        """Collapse <prefix:Name> and </prefix:Name> into <prefixName>. Idempotent."""
        return _PREFIXED_TAG.sub(r"\1\2\3", text)

    @staticmethod
    def _decode(raw: Union[str, bytes, None]) -> str:
        if raw is None:
            raise MalformedResponseError("Empty response from gateway")
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError:
                raise MalformedResponseError("Gateway response is not valid UTF-8")
        if not raw.strip():
            raise MalformedResponseError("Empty response from gateway")
        return raw

    @classmethod
    def extract_body(cls, raw: Union[str, bytes, None]) -> Dict[str, Any]:
        """
        Normalize, parse and flatten the envelope body.

        Raises:
            MalformedResponseError: If the payload is not XML or has no body element
        """
        text = cls._decode(raw)
        normalized = cls.normalize(text)

        try:
            root = ET.fromstring(normalized)
        except ET.ParseError as e:
            logger.warning(f"Unparsable PayHOST response: {e}")
            raise MalformedResponseError(
                "Gateway response is not well-formed XML",
                snippet=_snippet(text),
            ) from e

        if not _local_name(root.tag).endswith("Envelope"):
            raise MalformedResponseError(
                "Gateway response is not a SOAP envelope",
                missing_node="Envelope",
                snippet=_snippet(text),
            )

        body = next(
            (child for child in root if _local_name(child.tag).endswith("Body")),
            None,
        )
        if body is None:
            raise MalformedResponseError("SOAP envelope has no body", missing_node="Body")

        flattened = flatten_element(body)
        if not isinstance(flattened, dict) or not flattened:
            raise MalformedResponseError("SOAP body is empty", missing_node="Body")
        return flattened

    @classmethod
    def parse(cls, raw: Union[str, bytes, None]) -> ParsedStatus:
        """
        Parse a SingleFollowUpResponse.

        Raises:
            MalformedResponseError: On unparsable XML, SOAP faults, missing nodes
                or a non-integer TransactionStatusCode
        """
        text = cls._decode(raw)
        body = cls.extract_body(text)
        prefixes = response_prefixes(text, body)

        fault = find_field(body, "Fault", prefixes)
        if fault is not None:
            message = find_field(fault, "faultstring", prefixes) or "unknown fault"
            raise MalformedResponseError(f"Gateway returned a SOAP fault: {message}")

        node: Any = body
        path = []
        for name in STATUS_PATH:
            path.append(name)
            node = find_field(node, name, prefixes)
            if node is None:
                raise MalformedResponseError(
                    "Follow-up response is missing expected node",
                    missing_node="/".join(path),
                )
        if isinstance(node, list):
            node = node[0]

        code_text = find_field(node, STATUS_CODE_FIELD, prefixes)
        if not isinstance(code_text, str) or not code_text.strip():
            raise MalformedResponseError(
                "Follow-up response has no transaction status code",
                missing_node="/".join(path + [STATUS_CODE_FIELD]),
            )
        try:
            status_code = int(code_text.strip())
        except ValueError:
            raise MalformedResponseError(
                "Transaction status code is not an integer",
                snippet=_snippet(code_text),
            )

        fields = {}
        for attr, name in STATUS_FIELDS.items():
            value = find_field(node, name, prefixes)
            if isinstance(value, str) and value:
                fields[attr] = value

        status = QueryStatus(transaction_status_code=status_code, **fields)
        logger.info(
            f"PayHOST status for {status.pay_request_id or 'unknown request'}: "
            f"{status_code} ({status.transaction_status_description or 'no description'})"
        )
        return ParsedStatus(status_code=status_code, status=status, raw=body)
