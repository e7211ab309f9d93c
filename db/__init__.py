from .db import (
    Base,
    get_engine,
    get_session,
    create_all,
    dispose_engine,
    run_and_dispose,
)  # noqa: F401
from .repositories import Store, sql_store  # noqa: F401
