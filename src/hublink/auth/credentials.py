"""
Credentials a session authenticates with.

The cryptography that turns a credential into a token or a TLS identity belongs to the transport.
These classes only track what the session needs to decide: which authentication mode is in use,
where the trusted certificate lives, and when a token credential expires.
"""
import logging
import time
from enum import Enum
from urllib.parse import parse_qs

from hublink import defaults

logger = logging.getLogger(__name__)


class AuthMode(Enum):
    TOKEN = 'token'
    CERTIFICATE = 'certificate'
    HSM = 'hsm'


class Credential:
    """ base class for credentials. """
    auth_mode = None

    def __init__(self, trusted_cert_path=None):
        self._trusted_cert_path = trusted_cert_path

    @property
    def trusted_cert_path(self):
        """ path to the certificate used to verify the hub, or None to use the system trust store """
        return self._trusted_cert_path

    @trusted_cert_path.setter
    def trusted_cert_path(self, path):
        self._trusted_cert_path = path


def token_expiry(token):
    """
    Extracts the expiry from a shared access signature.
    >>> token_expiry('SharedAccessSignature sr=hub%2Fdevices%2Fd1&sig=abc&se=1700000000')
    1700000000
    """
    if token.startswith('SharedAccessSignature '):
        token = token[len('SharedAccessSignature '):]
    fields = parse_qs(token)
    try:
        return int(fields['se'][0])
    except (KeyError, ValueError) as e:
        raise ValueError("shared access signature has no valid expiry field") from e


class SasTokenCredential(Credential):
    """
    A token credential. The token is either derived from a shared key, in which case it can be
    renewed locally for another validity window, or it is a pre-signed signature supplied
    by the caller, whose expiry is fixed.

    :param shared_key: the shared access key tokens are derived from.
    :param token: a pre-signed shared access signature. Exactly one of shared_key and token must be given.
    :param validity: how long, in seconds, each derived token is valid for.
    :param clock: returns the current time in seconds since the epoch.
    """
    auth_mode = AuthMode.TOKEN

    def __init__(self, shared_key=None, token=None, validity=None, trusted_cert_path=None, clock=time.time):
        super().__init__(trusted_cert_path)
        if (shared_key is None) == (token is None):
            raise ValueError("exactly one of shared_key or token is required")
        self._shared_key = shared_key
        self._token = token
        self._clock = clock
        self._validity = defaults.token_validity_secs if validity is None else validity
        if self._validity <= 0:
            raise ValueError("token validity must be positive")
        self._expiry = clock() + self._validity if token is None else token_expiry(token)

    @property
    def has_shared_key(self) -> bool:
        """ True if tokens are derived from a shared key, and so can be renewed locally. """
        return self._shared_key is not None

    @property
    def shared_key(self):
        return self._shared_key

    @property
    def token(self):
        return self._token

    @property
    def expiry(self):
        """ when the current token expires, in seconds since the epoch """
        return self._expiry

    @property
    def validity(self):
        return self._validity

    @validity.setter
    def validity(self, seconds):
        """
        Sets the validity window and renews the token, so the expiry is recomputed from now.
        A pre-signed token keeps its own expiry.
        """
        if seconds <= 0:
            raise ValueError("token validity must be positive")
        self._validity = seconds
        self.renew()

    def renew(self):
        if self.has_shared_key:
            self._expiry = self._clock() + self._validity
            logger.debug("token renewed, valid for %s seconds", self._validity)

    def is_renewal_necessary(self) -> bool:
        """ True if the current token has expired. """
        return self._clock() >= self._expiry


class CertificateCredential(Credential):
    """
    A client certificate credential.
    :param certificate: the client certificate, as PEM text or a path.
    :param private_key: the private key of the certificate, as PEM text or a path.
    """
    auth_mode = AuthMode.CERTIFICATE

    def __init__(self, certificate, private_key, trusted_cert_path=None):
        super().__init__(trusted_cert_path)
        if not certificate or not private_key:
            raise ValueError("certificate and private key are required")
        self.certificate = certificate
        self.private_key = private_key


class HsmCredential(Credential):
    """
    A credential held by a hardware security module.
    :param security_provider: the provider the transport obtains signatures or certificates from.
    """
    auth_mode = AuthMode.HSM

    def __init__(self, security_provider, trusted_cert_path=None):
        super().__init__(trusted_cert_path)
        if security_provider is None:
            raise ValueError("security_provider is required")
        self.security_provider = security_provider
