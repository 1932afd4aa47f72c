import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, calling, raises, instance_of

from hublink.auth.credentials import CertificateCredential, SasTokenCredential
from hublink.configuration import Configuration, Identity
from hublink.errors import FatalTransportError, InvalidStateError, SecurityExpiredError
from hublink.renewal import TokenRenewalPolicy
from hublink.transport.base import Protocol, TransportChannel, TransportError


def make_policy(credential, is_open=True):
    configuration = Configuration(Identity('hub.example.net', 'device-1'), credential, Protocol.AMQPS)
    transport = Mock(spec=TransportChannel)
    transport.is_open = is_open
    return TokenRenewalPolicy(configuration, transport), transport


class CheckBeforeOpenTest(unittest.TestCase):

    def test_expired_token_blocks(self):
        clock = Mock(return_value=1000.0)
        credential = SasTokenCredential(shared_key='k', validity=10, clock=clock)
        sut, transport = make_policy(credential)
        sut.check_before_open()
        clock.return_value = 1010.0
        assert_that(calling(sut.check_before_open), raises(SecurityExpiredError))
        transport.open.assert_not_called()

    def test_certificate_never_expires(self):
        sut, transport = make_policy(CertificateCredential('cert', 'key'))
        sut.check_before_open()


class RenewAndRestartTest(unittest.TestCase):

    def setUp(self):
        self.clock = Mock(return_value=1000.0)
        self.credential = SasTokenCredential(shared_key='k', clock=self.clock)

    def test_restart_when_open_with_shared_key(self):
        sut, transport = make_policy(self.credential)
        events = []
        transport.close.side_effect = lambda: events.append(('close', self.credential.validity))
        transport.open.side_effect = lambda: events.append(('open', self.credential.validity))
        assert_that(sut.renew_and_restart(50), is_(True))
        assert_that(events, is_([('close', 3600), ('open', 50)]))
        assert_that(self.credential.expiry, is_(1050.0))

    def test_no_restart_when_closed(self):
        sut, transport = make_policy(self.credential, is_open=False)
        assert_that(sut.renew_and_restart(50), is_(False))
        transport.close.assert_not_called()
        transport.open.assert_not_called()
        assert_that(self.credential.validity, is_(50))

    def test_no_restart_for_presigned_token(self):
        credential = SasTokenCredential(token='SharedAccessSignature sr=h&sig=s&se=5000')
        sut, transport = make_policy(credential)
        assert_that(sut.renew_and_restart(50), is_(False))
        transport.close.assert_not_called()
        assert_that(credential.expiry, is_(5000))

    def test_transport_failure_is_fatal(self):
        sut, transport = make_policy(self.credential)
        transport.open.side_effect = TransportError("refused")
        assert_that(calling(sut.renew_and_restart).with_args(50), raises(FatalTransportError))
        try:
            sut.renew_and_restart(50)
        except FatalTransportError as e:
            assert_that(e.__cause__, is_(instance_of(TransportError)))

    def test_close_failure_is_fatal(self):
        sut, transport = make_policy(self.credential)
        transport.close.side_effect = RuntimeError("stuck")
        assert_that(calling(sut.renew_and_restart).with_args(50), raises(FatalTransportError))
        transport.open.assert_not_called()

    def test_requires_token_auth(self):
        sut, transport = make_policy(CertificateCredential('cert', 'key'))
        assert_that(calling(sut.renew_and_restart).with_args(50), raises(InvalidStateError))
