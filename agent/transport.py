from __future__ import annotations

import logging
import ssl

from agent.config import Settings

logger = logging.getLogger(__name__)


class TransportConfigError(Exception):
    """Certificates or keys for the secure transport could not be loaded."""


def build_ssl_context(settings: Settings) -> ssl.SSLContext:
    """Client TLS context for the collector endpoint.

    Server certificate and hostname verification are always on. A CA bundle
    replaces the system trust store when given; a certificate/key pair
    enables mutual TLS.
    """
    if settings.key_file and not settings.cert_file:
        raise TransportConfigError("key_file is set but cert_file is missing")

    try:
        ctx = ssl.create_default_context(
            ssl.Purpose.SERVER_AUTH, cafile=settings.ca_cert_file
        )
    except (OSError, ssl.SSLError) as exc:
        raise TransportConfigError(f"load CA bundle {settings.ca_cert_file}: {exc}") from exc

    if settings.cert_file:
        try:
            ctx.load_cert_chain(settings.cert_file, settings.key_file)
        except (OSError, ssl.SSLError) as exc:
            raise TransportConfigError(
                f"load client certificate {settings.cert_file}: {exc}"
            ) from exc
        logger.info("Client certificate loaded from %s", settings.cert_file)

    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx
