"""
Library defaults.

The values below are replaced at import by the settings in hublink.cfg files (see hublink.config.config).
Durations ending in _millis are milliseconds, those ending in _secs are seconds.
"""
import sys

from hublink.config.config import configure_module

send_period_millis = 10
receive_period_millis_https = 25 * 60 * 1000
receive_period_millis_amqps = 10
receive_period_millis_mqtt = 10

token_validity_secs = 3600
operation_timeout_millis = 4 * 60 * 1000

# how long close() waits for pending sends to drain, and how often it checks
close_timeout_secs = 60.0
close_poll_initial_secs = 0.01
close_poll_maximum_secs = 0.5

upload_workers = 2

# default retry policy handed to the transport for steady-state sends
retry_initial_secs = 0.1
retry_maximum_secs = 10.0

configure_module(sys.modules[__name__], 'hublink')
