from __future__ import annotations


class ProxyError(Exception):
    pass


class InvalidAddressError(ProxyError, ValueError):
    pass


class ProxyConnectError(ProxyError):
    def __init__(self, address: str, cause: BaseException):
        super().__init__(f"unable to connect to proxy at address: {address}, err: {cause!r}")
        self.address = address
        self.cause = cause


class NotConnectedError(ProxyError):
    def __init__(self) -> None:
        super().__init__("failed to send data: invalid proxy connection")
