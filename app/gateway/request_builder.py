"""
SOAP envelope for the PayHOST SingleFollowUpRequest operation.
"""

import re
from xml.sax.saxutils import escape

from app.core.exceptions import PaymentValidationError
from app.schemas.paygate import StatusQuery

SOAP_ENV_NAMESPACE = "http://schemas.xmlsoap.org/soap/envelope/"
PAYHOST_NAMESPACE = "http://www.paygate.co.za/PayHOST"

QUERY_ENVELOPE_TEMPLATE = (
    '<SOAP-ENV:Envelope xmlns:SOAP-ENV="' + SOAP_ENV_NAMESPACE + '">\n'
    "  <SOAP-ENV:Header/>\n"
    "  <SOAP-ENV:Body>\n"
    '    <SingleFollowUpRequest xmlns="' + PAYHOST_NAMESPACE + '">\n'
    "      <QueryRequest>\n"
    "        <Account>\n"
    "          <PayGateId>{account_id}</PayGateId>\n"
    "          <Password>{secret}</Password>\n"
    "        </Account>\n"
    "        <PayRequestId>{reference}</PayRequestId>\n"
    "      </QueryRequest>\n"
    "    </SingleFollowUpRequest>\n"
    "  </SOAP-ENV:Body>\n"
    "</SOAP-ENV:Envelope>"
)

# Characters XML 1.0 does not allow anywhere in a document, escaped or not
_XML_ILLEGAL_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def _xml_text(value: str, field: str) -> str:
    if _XML_ILLEGAL_CHARS.search(value):
        # Never include the value itself, field may be the password
        raise PaymentValidationError(
            f"{field} contains characters that cannot be sent in XML",
            field,
        )
    return escape(value)


class QueryRequestBuilder:
    """Serializes a StatusQuery into the PayHOST envelope"""

    @staticmethod
    def build(query: StatusQuery) -> str:
        """
        Build the follow-up request body.

        Raises:
            PaymentValidationError: If a value contains XML-illegal control characters
        """
        return QUERY_ENVELOPE_TEMPLATE.format(
            account_id=_xml_text(query.credentials.account_id, "paygate_id"),
            secret=_xml_text(query.credentials.secret, "password"),
            reference=_xml_text(query.transaction_reference, "pay_request_id"),
        )
