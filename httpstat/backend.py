"""
httpcore network backends that report DNS and connect timings.

httpcore resolves host names inside connect_tcp, so a plain trace extension can
only see DNS + TCP as one step. These backends wrap the real backend, resolve
the host themselves and dial the resolved addresses in order, reporting
dns_start / dns_done / connect_start / connect_done to the trace active for
the current request. Requests without an httpstat trace pass straight through.

Usage with httpx:
    client = httpx.Client(transport=tracing_transport())

Usage with httpcore:
    pool = httpcore.ConnectionPool(network_backend=TracingBackend())
"""

import ipaddress
import logging
import socket
from typing import Any, Iterable

import anyio
import httpcore
import httpx

from .config import settings
from .trace import HTTPCoreTrace, active_trace

logger = logging.getLogger(__name__)


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _addresses(infos: Iterable[tuple]) -> list[str]:
    """Unique addresses from getaddrinfo results, in resolver order."""
    seen: list[str] = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        address = sockaddr[0]
        if address not in seen:
            seen.append(address)
    return seen


def _traced(host: str) -> HTTPCoreTrace | None:
    if not settings.resolve_dns or _is_ip(host):
        return None
    return active_trace()


class TracingBackend(httpcore.NetworkBackend):
    """Sync network backend; wraps httpcore.SyncBackend by default."""

    def __init__(self, backend: httpcore.NetworkBackend | None = None) -> None:
        self._backend = backend if backend is not None else httpcore.SyncBackend()

    def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.NetworkStream:
        trace = _traced(host)
        if trace is None:
            return self._backend.connect_tcp(
                host, port, timeout=timeout, local_address=local_address, socket_options=socket_options
            )

        trace.tracker.dns_start()
        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except OSError as e:
            logger.debug("DNS lookup for %s failed: %s", host, e)
            raise httpcore.ConnectError(str(e)) from e
        trace.tracker.dns_done()

        addresses = _addresses(infos)
        logger.debug("Resolved %s to %s", host, addresses)

        last_error: httpcore.ConnectError | None = None
        for address in addresses:
            trace.report_connect_start()
            try:
                stream = self._backend.connect_tcp(
                    address, port, timeout=timeout, local_address=local_address, socket_options=socket_options
                )
            except httpcore.ConnectError as e:
                logger.debug("Connect to %s:%d failed: %s", address, port, e)
                last_error = e
                continue
            trace.tracker.connect_done()
            return stream

        if last_error is not None:
            raise last_error
        raise httpcore.ConnectError(f"No addresses found for {host}")

    def connect_unix_socket(
        self,
        path: str,
        timeout: float | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.NetworkStream:
        return self._backend.connect_unix_socket(path, timeout=timeout, socket_options=socket_options)

    def sleep(self, seconds: float) -> None:
        self._backend.sleep(seconds)


class AsyncTracingBackend(httpcore.AsyncNetworkBackend):
    """Async network backend; wraps httpcore.AnyIOBackend by default."""

    def __init__(self, backend: httpcore.AsyncNetworkBackend | None = None) -> None:
        self._backend = backend if backend is not None else httpcore.AnyIOBackend()

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        trace = _traced(host)
        if trace is None:
            return await self._backend.connect_tcp(
                host, port, timeout=timeout, local_address=local_address, socket_options=socket_options
            )

        trace.tracker.dns_start()
        try:
            infos = await anyio.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except OSError as e:
            logger.debug("DNS lookup for %s failed: %s", host, e)
            raise httpcore.ConnectError(str(e)) from e
        trace.tracker.dns_done()

        addresses = _addresses(infos)
        logger.debug("Resolved %s to %s", host, addresses)

        last_error: httpcore.ConnectError | None = None
        for address in addresses:
            trace.report_connect_start()
            try:
                stream = await self._backend.connect_tcp(
                    address, port, timeout=timeout, local_address=local_address, socket_options=socket_options
                )
            except httpcore.ConnectError as e:
                logger.debug("Connect to %s:%d failed: %s", address, port, e)
                last_error = e
                continue
            trace.tracker.connect_done()
            return stream

        if last_error is not None:
            raise last_error
        raise httpcore.ConnectError(f"No addresses found for {host}")

    async def connect_unix_socket(
        self,
        path: str,
        timeout: float | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        return await self._backend.connect_unix_socket(path, timeout=timeout, socket_options=socket_options)

    async def sleep(self, seconds: float) -> None:
        await self._backend.sleep(seconds)


def tracing_transport(
    backend: httpcore.NetworkBackend | None = None, **kwargs: Any
) -> httpx.HTTPTransport:
    """
    httpx.HTTPTransport whose connection pool dials through TracingBackend.

    httpx has no public hook for the network backend, so the pool's backend is
    swapped after construction. kwargs go to httpx.HTTPTransport.
    """
    transport = httpx.HTTPTransport(**kwargs)
    pool = transport._pool
    pool._network_backend = TracingBackend(backend if backend is not None else pool._network_backend)
    return transport


def async_tracing_transport(
    backend: httpcore.AsyncNetworkBackend | None = None, **kwargs: Any
) -> httpx.AsyncHTTPTransport:
    """Async counterpart of tracing_transport()."""
    transport = httpx.AsyncHTTPTransport(**kwargs)
    pool = transport._pool
    pool._network_backend = AsyncTracingBackend(backend if backend is not None else pool._network_backend)
    return transport
