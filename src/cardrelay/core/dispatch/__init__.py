from cardrelay.core.dispatch.dispatcher import (
    Dispatcher,
    RequestRecord,
    ResponseRecord,
    build_body,
)

__all__ = ["Dispatcher", "RequestRecord", "ResponseRecord", "build_body"]
