"""
Credentials describe how a session authenticates. The transport turns them into tokens or TLS
identities; the session only consults them for the authentication mode and token expiry.
"""
