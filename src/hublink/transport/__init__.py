"""
The transport package provides the channel a session exchanges messages over.

TransportChannel is the interface a session drives. InMemoryTransport implements it within the process,
delivering sends to a function and dispatching injected inbound messages.
"""
