"""TLS listener configuration for the bootstrap server."""

import ssl

import uvicorn

MIN_TLS_VERSION = ssl.TLSVersion.TLSv1_2


class TLSConfig(uvicorn.Config):
    """uvicorn config that enforces a TLS version floor.

    uvicorn builds its own SSLContext from the cert/key paths; after it does,
    raise the minimum protocol version and let the server pick the cipher.
    """

    def load(self) -> None:
        super().load()
        if self.ssl is not None:
            harden_ssl_context(self.ssl)


def harden_ssl_context(context: ssl.SSLContext) -> ssl.SSLContext:
    context.minimum_version = MIN_TLS_VERSION
    context.options |= ssl.OP_CIPHER_SERVER_PREFERENCE
    return context
