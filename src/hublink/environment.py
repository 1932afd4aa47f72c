"""
Discovers a module's identity from the environment the edge runtime starts it in.

The runtime either supplies a connection string, or describes the module with the IOTEDGE_* variables
and signs tokens for it through the workload endpoint at IOTEDGE_IOTEDGEDURI.
"""
import logging
import os

from hublink.auth.credentials import HsmCredential
from hublink.configuration import Configuration, Identity
from hublink.errors import EnvironmentConfigError
from hublink.session import Session
from hublink.support.mixins import StringerMixin
from hublink.transport.memory import InMemoryTransport

logger = logging.getLogger(__name__)

edged_uri_variable = 'IOTEDGE_IOTEDGEDURI'
edged_api_version_variable = 'IOTEDGE_IOTEDGEDVERSION'
hub_hostname_variable = 'IOTEDGE_IOTHUBHOSTNAME'
gateway_hostname_variable = 'IOTEDGE_GATEWAYHOSTNAME'
device_id_variable = 'IOTEDGE_DEVICEID'
module_id_variable = 'IOTEDGE_MODULEID'
auth_scheme_variable = 'IOTEDGE_AUTHSCHEME'
edgehub_connection_string_variable = 'EdgeHubConnectionString'
iothub_connection_string_variable = 'IotHubConnectionString'

sas_token_auth_scheme = 'SasToken'

required_variables = (edged_uri_variable, device_id_variable, module_id_variable, hub_hostname_variable,
                      auth_scheme_variable)


class EdgeEnvironment(StringerMixin):
    """
    What the edge runtime told the module about itself. When connection_string is set, the other
    fields are None and the caller parses the connection string.
    """

    def __init__(self, hostname=None, device_id=None, module_id=None, gateway_hostname=None, edged_uri=None,
                 api_version=None, connection_string=None):
        self.hostname = hostname
        self.device_id = device_id
        self.module_id = module_id
        self.gateway_hostname = gateway_hostname
        self.edged_uri = edged_uri
        self.api_version = api_version
        self.connection_string = connection_string

    @property
    def identity(self) -> Identity:
        if self.connection_string is not None:
            raise EnvironmentConfigError("the environment supplies a connection string rather than an identity")
        return Identity(self.hostname, self.device_id, self.module_id, self.gateway_hostname)


def read_environment(environ=None) -> EdgeEnvironment:
    """
    Reads the edge runtime variables. A connection string, the edge hub's first, takes precedence.
    :param environ: the variables to read, defaults to os.environ.
    :raises EnvironmentConfigError: if a required variable is missing or the auth scheme is not supported.
    """
    environ = os.environ if environ is None else environ
    connection_string = environ.get(edgehub_connection_string_variable) or \
        environ.get(iothub_connection_string_variable)
    if connection_string:
        logger.debug("module environment supplies a connection string")
        return EdgeEnvironment(connection_string=connection_string)

    for variable in required_variables:
        if not environ.get(variable):
            raise EnvironmentConfigError("Environment variable %s is required." % variable)
    if environ[auth_scheme_variable] != sas_token_auth_scheme:
        raise EnvironmentConfigError("Unsupported authentication scheme. Supported scheme is %s."
                                     % sas_token_auth_scheme)
    env = EdgeEnvironment(environ[hub_hostname_variable], environ[device_id_variable], environ[module_id_variable],
                          environ.get(gateway_hostname_variable) or None, environ[edged_uri_variable],
                          environ.get(edged_api_version_variable))
    logger.info("module %s/%s discovered from environment", env.device_id, env.module_id)
    return env


def module_session_from_environment(protocol, security_provider_factory, transport_factory=InMemoryTransport,
                                    environ=None) -> Session:
    """
    Creates a module session for the identity the edge runtime describes.
    :param security_provider_factory: called with the EdgeEnvironment to create the provider that signs
        tokens through the workload endpoint.
    """
    env = read_environment(environ)
    credential = HsmCredential(security_provider_factory(env))
    return Session.for_module(Configuration(env.identity, credential, protocol), transport_factory)
