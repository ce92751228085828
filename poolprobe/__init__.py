"""
poolprobe - conformance harness for PSR-6 style cache pools.

Runs a fixed CRUD and bulk-retrieval sequence against any object exposing the
pool capability interface, records PASS/FAIL/SKIP assertions and exits with a
code derived from them.

Typical use:
    from poolprobe.caching.drivers import get_pool
    from poolprobe.core.contract_verifier import ContractVerifier
    from poolprobe.core.session import TestSession

    with TestSession("Memory driver") as session:
        ContractVerifier(session).run_crud_tests(get_pool("Memory"))
"""

__version__ = "1.0.0"
API_VERSION = "1.0.0"

__all__ = ["API_VERSION", "__version__"]
