"""dnsgate resolution engine and listeners.

Brief:
    ``dnsgate.servers.resolver`` holds the per-question decision engine,
    ``dnsgate.servers.udp_server`` the threaded UDP listener, and
    ``dnsgate.servers.transports`` the outbound resolver clients.
"""
