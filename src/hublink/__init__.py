"""


Device Sessions

- Session: the lifecycle of one logical connection to the hub. CREATED -> OPEN -> CLOSED, and
  CLOSED may be opened again.
- Configuration: identity, credential and protocol fixed at construction, plus the settings that may
  change at any time (retry policy, operation timeout, message callback.) Shared by reference with the
  transport and the features.
- TransportChannel: the single channel the session sends and receives over. The channel runs its own
  background thread. InMemoryTransport is a channel that stays within the process.
- Features: twin, methods and file upload. Each is started at most once per session and shares the
  session's configuration and channel.
- TokenRenewalPolicy: blocks opening with an expired token, and restarts the channel when a
  key-derived token is renewed while open.


More rough notes:

- Options are set through Session.configure(). Some may only change while the channel is closed,
  since the transport reads them when it opens.
- Module sessions are sessions whose identity names a module. They send to named outputs and cannot
  upload files. The edge runtime describes a module through environment variables, see
  hublink.environment.
- Library defaults (periods, timeouts, worker counts) live in hublink.defaults and can be overridden
  by hublink.cfg files.


## Threading

Calls into the session are synchronous. The session lock guards state changes and option changes,
so they are seen consistently by the transport thread. A second lock serializes opening, closing and
restarting the channel. A token restart holds only that one, so a callback sending on the transport
thread is not blocked while the restart waits for that thread.

close() is the exception: it polls the channel until pending sends drain, without holding the lock, so
send callbacks running on the transport thread can still reach the session.

Send completions, inbound messages and connection status changes arrive on the transport thread.
"""
