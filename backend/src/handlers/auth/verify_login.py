"""
Login Verification Handler.
POST /auth/login
Body: { "phone": "0712345678", "settlementId": "..." }

Checks the phone + settlement pair and returns the session profile.
Token issuance is left to the identity provider.
"""
from shared.credentials import CredentialError, PhoneSettlementVerifier
from shared.logging import logger, log_event
from shared.utils import error_response, format_response, parse_body

verifier = PhoneSettlementVerifier()


def handler(event, context):
    log_event(event)

    try:
        credentials = parse_body(event)

        try:
            user = verifier.verify(credentials)
        except CredentialError as e:
            return error_response(401, str(e))

        return format_response(200, {
            'success': True,
            'data': {'user': user}
        })

    except Exception as e:
        logger.exception(f"Authentication error: {e}")
        return error_response(500, 'Internal server error')
