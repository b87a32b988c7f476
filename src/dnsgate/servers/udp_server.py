import logging
import socketserver
import threading
from typing import Optional

from dnslib import RCODE, DNSError, DNSRecord

from .resolver import ResolutionEngine

logger = logging.getLogger("dnsgate.server")


class _EngineUDPServer(socketserver.ThreadingUDPServer):
    """
    Brief: ThreadingUDPServer that carries the resolution engine for its handlers.

    Inputs:
    - server_address: (host, port) to bind
    - engine: ResolutionEngine shared by every handler thread

    Outputs:
    - bound server instance
    """

    daemon_threads = True

    def __init__(self, server_address, engine: ResolutionEngine) -> None:
        self.engine = engine
        super().__init__(server_address, DNSUDPHandler)


class DNSUDPHandler(socketserver.BaseRequestHandler):
    """
    Handles one UDP DNS datagram.

    Each datagram runs on its own thread; the engine does the per-question
    work and this handler only decodes, encodes and sends.

    Example use:
        This handler is used internally by DNSServer and is not
        typically instantiated directly by users.
    """

    def _make_servfail_response(self, request: DNSRecord) -> bytes:
        r = request.reply()
        r.header.rcode = RCODE.SERVFAIL
        return r.pack()

    def handle(self) -> None:
        """Decode the query, resolve it through the engine and send the reply.

        Inputs:
          - None (called by socketserver for each UDP datagram).
        Outputs:
          - None; sends at most one DNS response back to the client.

        Datagrams that cannot be decoded are dropped without a reply.
        """
        data, sock = self.request
        engine: ResolutionEngine = self.server.engine

        try:
            request = DNSRecord.parse(data)
        except DNSError as e:
            logger.debug(
                "Dropping undecodable datagram from %s: %s", self.client_address[0], e
            )
            return

        try:
            wire = engine.build_reply(request).pack()
        except Exception:
            logger.exception("Unexpected error resolving query %s", request.q.qname)
            wire = self._make_servfail_response(request)

        sock.sendto(wire, self.client_address)


class DNSServer:
    """A UDP DNS server answering through a ResolutionEngine.

    Example use:
        >>> import threading
        >>> server = DNSServer("127.0.0.1", 5355, engine)  # doctest: +SKIP
        >>> t = threading.Thread(target=server.serve_forever, daemon=True)  # doctest: +SKIP
        >>> t.start()  # doctest: +SKIP
        >>> server.stop()  # doctest: +SKIP
    """

    def __init__(self, host: str, port: int, engine: ResolutionEngine) -> None:
        """Bind the UDP socket.

        Inputs:
            host: The host to listen on.
            port: The port to listen on (0 picks a free port).
            engine: ResolutionEngine used for every request.

        Raises OSError (including PermissionError) when binding fails.
        """
        self.engine = engine
        self._serving = False
        self._stopped = False
        self._state_lock = threading.Lock()
        try:
            self.server = _EngineUDPServer((host, port), engine)
        except PermissionError as e:
            logger.error(
                "Permission denied when binding to %s:%d. Try a port >1024 or run with elevated privileges. Original error: %s",
                host,
                port,
                e,
            )
            raise
        logger.debug("DNS UDP server bound to %s:%d", *self.address)

    @property
    def address(self) -> tuple:
        """Actual (host, port) the server is bound to."""
        return self.server.server_address[:2]

    def serve_forever(self, poll_interval: Optional[float] = 0.5) -> None:
        """Start the UDP server loop; returns after stop() or KeyboardInterrupt.

        Returns immediately when stop() already ran.
        """
        with self._state_lock:
            if self._stopped:
                return
            self._serving = True
        try:
            self.server.serve_forever(poll_interval=poll_interval)
        except KeyboardInterrupt:
            pass

    def stop(self) -> None:
        """Request graceful shutdown and close the underlying UDP socket.

        Inputs:
          - None
        Outputs:
          - None; must be called from a thread other than the one running
            serve_forever(). shutdown() is skipped when the loop never started
            because it would wait forever; a later serve_forever() returns
            without serving.
        """
        with self._state_lock:
            self._stopped = True
            serving = self._serving
        if serving:
            try:
                self.server.shutdown()
            except Exception:  # pragma: no cover
                logger.exception("Error while shutting down UDP server")
        self.close()

    def close(self) -> None:
        """Close the UDP socket without waiting for the serve loop."""
        try:
            self.server.server_close()
        except Exception:  # pragma: no cover
            logger.exception("Error while closing UDP server socket")
