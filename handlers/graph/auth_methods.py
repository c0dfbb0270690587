# ================================================================
# File     : handlers/graph/auth_methods.py
# Purpose  : Typed view over Graph authentication method payloads
# Notes    : Graph returns a property bag per method, tagged by
#            '@odata.type'. We map that tag onto a closed set of
#            kinds, with OTHER for anything we do not recognise.
# ================================================================

from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional


class AuthMethodKind(Enum):
    PASSWORD = "password"
    PHONE = "phone"
    EMAIL = "email"
    MICROSOFT_AUTHENTICATOR = "microsoftAuthenticator"
    FIDO2 = "fido2"
    WINDOWS_HELLO = "windowsHelloForBusiness"
    SOFTWARE_OATH = "softwareOath"
    TEMPORARY_ACCESS_PASS = "temporaryAccessPass"
    PLATFORM_CREDENTIAL = "platformCredential"
    X509_CERTIFICATE = "x509Certificate"
    OTHER = "other"


ODATA_TYPE_KINDS: Dict[str, AuthMethodKind] = {
    "#microsoft.graph.passwordAuthenticationMethod": AuthMethodKind.PASSWORD,
    "#microsoft.graph.phoneAuthenticationMethod": AuthMethodKind.PHONE,
    "#microsoft.graph.emailAuthenticationMethod": AuthMethodKind.EMAIL,
    "#microsoft.graph.microsoftAuthenticatorAuthenticationMethod": AuthMethodKind.MICROSOFT_AUTHENTICATOR,
    "#microsoft.graph.fido2AuthenticationMethod": AuthMethodKind.FIDO2,
    "#microsoft.graph.windowsHelloForBusinessAuthenticationMethod": AuthMethodKind.WINDOWS_HELLO,
    "#microsoft.graph.softwareOathAuthenticationMethod": AuthMethodKind.SOFTWARE_OATH,
    "#microsoft.graph.temporaryAccessPassAuthenticationMethod": AuthMethodKind.TEMPORARY_ACCESS_PASS,
    "#microsoft.graph.platformCredentialAuthenticationMethod": AuthMethodKind.PLATFORM_CREDENTIAL,
    "#microsoft.graph.x509CertificateAuthenticationMethod": AuthMethodKind.X509_CERTIFICATE,
}

# Graph is not consistent about the casing of the discriminator
_ODATA_TYPE_KINDS_LOWER = {k.lower(): v for k, v in ODATA_TYPE_KINDS.items()}


class AuthMethod(NamedTuple):
    kind: AuthMethodKind
    id: Optional[str]
    odata_type: str
    raw: Dict[str, Any]


# ================================================================
# Function: fncParseAuthMethod
# Purpose : Turn one raw Graph method payload into an AuthMethod
# ================================================================
def fncParseAuthMethod(raw: Dict[str, Any]) -> AuthMethod:
    odata_type = str(raw.get("@odata.type") or "")
    kind = _ODATA_TYPE_KINDS_LOWER.get(odata_type.strip().lower(), AuthMethodKind.OTHER)
    return AuthMethod(kind=kind, id=raw.get("id"), odata_type=odata_type, raw=raw)


def fncParseAuthMethods(rows: List[Dict[str, Any]]) -> List[AuthMethod]:
    return [fncParseAuthMethod(r) for r in rows or [] if isinstance(r, dict)]


def fncHasKind(methods: List[AuthMethod], kind: AuthMethodKind) -> bool:
    return any(m.kind is kind for m in methods)
