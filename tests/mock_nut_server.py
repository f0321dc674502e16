"""Mock NUT server for unit testing."""

import socket
import threading
import time
from typing import Callable

NO_REPLY = object()


class MockNutServer:
    """Mock NUT server for testing.

    Speaks enough of the upsd protocol for ``USERNAME``, ``PASSWORD``,
    ``LOGIN``, ``GET VAR``, ``INSTCMD`` and ``LOGOUT``. Unlike a real upsd it
    checks passwords as soon as ``PASSWORD`` is received.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,  # 0 = random port
        variables: dict[str, dict[str, str]] | None = None,
        users: dict[str, str] | None = None,
        commands: tuple[str, ...] = ("load.on", "load.off"),
        line_ending: str = "\n",
    ) -> None:
        """Initialize mock NUT server.

        Parameters
        ----------
        host : str, optional
            Bind host, by default "127.0.0.1"
        port : int, optional
            Bind port (0 for random), by default 0
        variables : dict[str, dict[str, str]] | None, optional
            Variables per UPS name, by default one UPS ``myups``
        users : dict[str, str] | None, optional
            User names and passwords, by default ``admin``/``secret``
        commands : tuple[str, ...], optional
            Instant commands the UPS supports
        line_ending : str, optional
            Reply line terminator, by default "\\n"
        """
        self.host = host
        self.port = port
        self.variables = variables if variables is not None else {
            "myups": {
                "input.voltage": "230.1",
                "output.voltage": "229.5",
                "output.current": "1.20",
                "ups.status": "OL",
            }
        }
        self.users = users if users is not None else {"admin": "secret"}
        self.commands = commands
        self.line_ending = line_ending

        self.socket: socket.socket | None = None
        self.server_thread: threading.Thread | None = None
        self.running = False
        self.actual_port: int | None = None
        self.command_handler: Callable[[str], object] | None = None

        self.received: list[str] = []
        self.executed: list[tuple[str, str]] = []
        self.connections = 0
        self.disconnects = 0
        self._clients: list[socket.socket] = []
        self._lock = threading.Lock()

    def set_command_handler(self, handler: Callable[[str], object]) -> None:
        """Set command handler function.

        The handler sees every request line first. Returning a string sends it
        as the reply, returning bytes sends them as-is with no terminator added,
        returning ``NO_REPLY`` sends nothing and returning None
        falls back to the default behaviour.

        Parameters
        ----------
        handler : Callable[[str], object]
            Function that takes a request line and returns a reply
        """
        self.command_handler = handler

    def start(self) -> int:
        """Start the mock server.

        Returns
        -------
        int
            Actual port number
        """
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.socket.bind((self.host, self.port))
        self.socket.listen(5)
        self.actual_port = self.socket.getsockname()[1]
        self.running = True

        self.server_thread = threading.Thread(target=self._server_loop, daemon=True)
        self.server_thread.start()

        return self.actual_port

    def stop(self) -> None:
        """Stop the mock server."""
        self.running = False
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass

        with self._lock:
            clients = list(self._clients)
        for conn in clients:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

        if self.server_thread:
            self.server_thread.join(timeout=1.0)

    def wait_for_disconnects(self, count: int, timeout: float = 2.0) -> bool:
        """Wait until ``count`` client connections have ended."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                if self.disconnects >= count:
                    return True
            time.sleep(0.05)
        return False

    def _server_loop(self) -> None:
        """Server main loop."""
        while self.running:
            try:
                conn, _ = self.socket.accept()
            except OSError:
                break
            with self._lock:
                self.connections += 1
                self._clients.append(conn)
            threading.Thread(target=self._handle_client, args=(conn,), daemon=True).start()

    def _handle_client(self, conn: socket.socket) -> None:
        """Handle client connection.

        Parameters
        ----------
        conn : socket.socket
            Client connection
        """
        session = {"username": None, "authenticated": False}
        buffer = b""
        try:
            while self.running:
                data = conn.recv(1024)
                if not data:
                    break
                buffer += data
                while b"\n" in buffer:
                    raw, buffer = buffer.split(b"\n", 1)
                    line = raw.decode().rstrip("\r")
                    with self._lock:
                        self.received.append(line)

                    reply = None
                    if self.command_handler:
                        reply = self.command_handler(line)
                    if reply is None:
                        reply = self._reply(line, session)
                    if reply is NO_REPLY:
                        continue

                    if isinstance(reply, bytes):
                        conn.sendall(reply)
                    else:
                        conn.sendall(f"{reply}{self.line_ending}".encode())
                    if line == "LOGOUT":
                        return
        except OSError:
            pass
        finally:
            conn.close()
            with self._lock:
                self.disconnects += 1
                if conn in self._clients:
                    self._clients.remove(conn)

    def _reply(self, line: str, session: dict) -> str:
        """Default upsd behaviour for one request line."""
        parts = line.split(" ")
        verb = parts[0]

        if verb == "USERNAME" and len(parts) == 2:
            if session["username"] is not None:
                return "ERR ALREADY-SET-USERNAME"
            session["username"] = parts[1]
            return "OK"

        if verb == "PASSWORD" and len(parts) == 2:
            if session["username"] is None:
                return "ERR USERNAME-REQUIRED"
            if self.users.get(session["username"]) != parts[1]:
                return "ERR INVALID-PASSWORD"
            session["authenticated"] = True
            return "OK"

        if verb == "LOGIN" and len(parts) == 2:
            if not session["authenticated"]:
                return "ERR ACCESS-DENIED"
            if parts[1] not in self.variables:
                return "ERR UNKNOWN-UPS"
            return "OK"

        if verb == "LOGOUT":
            return "OK Goodbye"

        if parts[:2] == ["GET", "VAR"] and len(parts) == 4:
            ups, name = parts[2], parts[3]
            if ups not in self.variables:
                return "ERR UNKNOWN-UPS"
            if name not in self.variables[ups]:
                return "ERR VAR-NOT-SUPPORTED"
            return f'VAR {ups} {name} "{self.variables[ups][name]}"'

        if verb == "INSTCMD" and len(parts) == 3:
            ups, command = parts[1], parts[2]
            if not session["authenticated"]:
                return "ERR ACCESS-DENIED"
            if ups not in self.variables:
                return "ERR UNKNOWN-UPS"
            if command not in self.commands:
                return "ERR CMD-NOT-SUPPORTED"
            with self._lock:
                self.executed.append((ups, command))
            return "OK"

        if len(parts) > 1 and verb in ("USERNAME", "PASSWORD", "GET", "INSTCMD", "LOGIN"):
            return "ERR INVALID-ARGUMENT"
        return "ERR UNKNOWN-COMMAND"

    def __enter__(self) -> "MockNutServer":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.stop()
