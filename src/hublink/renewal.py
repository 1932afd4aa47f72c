import logging

from hublink.auth.credentials import AuthMode
from hublink.errors import FatalTransportError, InvalidStateError, SecurityExpiredError

logger = logging.getLogger(__name__)


class TokenRenewalPolicy:
    """
    Decides when a token credential blocks opening, and restarts the channel
    when a key-derived credential is renewed while the channel is open.
    """

    def __init__(self, configuration, transport):
        self.configuration = configuration
        self.transport = transport

    def check_before_open(self):
        """ Raises SecurityExpiredError when a token credential has expired. Other credentials always pass. """
        if self.configuration.auth_mode is not AuthMode.TOKEN:
            return
        if self.configuration.credential.is_renewal_necessary():
            raise SecurityExpiredError("Your SasToken is expired")

    def renew_and_restart(self, validity_secs):
        """
        Sets the token validity window, recomputing the expiry.
        If the channel is open and the credential is key-derived, the channel is closed before the
        change and reopened after it so the new token is used. A pre-signed token cannot be renewed
        locally, so the channel is left as it is.

        :return: True if the channel was restarted.
        :raises FatalTransportError: if the channel failed to close or reopen.
        """
        if self.configuration.auth_mode is not AuthMode.TOKEN:
            raise InvalidStateError("Cannot set sas token validity time when auth type is not SAS token")
        credential = self.configuration.credential
        restart = self.transport.is_open and credential.has_shared_key
        if not restart:
            credential.validity = validity_secs
            logger.debug("token validity set to %s seconds", validity_secs)
            return False
        self._restart_step(self.transport.close)
        credential.validity = validity_secs
        self._restart_step(self.transport.open)
        logger.info("channel restarted with token valid for %s seconds", validity_secs)
        return True

    @staticmethod
    def _restart_step(step):
        try:
            step()
        except Exception as e:
            logger.exception("channel restart failed: %s", e)
            raise FatalTransportError("channel restart failed: %s" % e) from e
