import sys
from pathlib import Path

# Add project root to Python path to allow running script directly
sys.path.append(str(Path(__file__).parent.parent))

import warnings
from unittest.mock import MagicMock, patch

from poolprobe.core.exceptions import DriverCheckError, DriverConnectError, DriverNotFoundError, LogicError
from poolprobe.core.faults import (
    FULL_MASK,
    NO_MESSAGE_PLACEHOLDER,
    REDUCED_MASK,
    FatalFault,
    FaultClassifier,
    FaultSeverity,
    NoticeFault,
    StrictFault,
    severity_for_category,
)
from poolprobe.core.ledger import AssertionLedger
from poolprobe.testing.test_framework import TestSuite, suppress_logging
from poolprobe.testing.test_utilities import RecordingPrinter, create_standard_test_runner, temp_directory

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class CustomWarning(Warning):
    pass


def _classifier(mask: FaultSeverity = FULL_MASK) -> tuple[FaultClassifier, RecordingPrinter, RecordingPrinter, MagicMock]:
    output = RecordingPrinter()
    debug = RecordingPrinter()
    terminate = MagicMock(return_value=1)
    classifier = FaultClassifier(AssertionLedger(emit=output), debug, PROJECT_ROOT, terminate, mask=mask)
    return classifier, output, debug, terminate


def _raised(exc: Exception) -> Exception:
    try:
        raise exc
    except Exception as e:
        return e


def faults_module_tests() -> bool:
    """Run tests for the fault classifier."""
    with suppress_logging():
        suite = TestSuite("Fault Classifier", __name__)
        suite.start_suite()

        def test_category_mapping():
            assert severity_for_category(FatalFault) is FaultSeverity.FATAL
            assert severity_for_category(UserWarning) is FaultSeverity.RECOVERABLE_WARNING
            assert severity_for_category(RuntimeWarning) is FaultSeverity.RECOVERABLE_WARNING
            assert severity_for_category(CustomWarning) is FaultSeverity.RECOVERABLE_WARNING
            assert severity_for_category(NoticeFault) is FaultSeverity.NOTICE
            assert severity_for_category(ResourceWarning) is FaultSeverity.NOTICE
            assert severity_for_category(StrictFault) is FaultSeverity.STRICT
            assert severity_for_category(SyntaxWarning) is FaultSeverity.STRICT
            assert severity_for_category(DeprecationWarning) is FaultSeverity.DEPRECATED
            assert severity_for_category(PendingDeprecationWarning) is FaultSeverity.DEPRECATED
            assert severity_for_category(FutureWarning) is FaultSeverity.DEPRECATED

        def test_masks():
            assert FULL_MASK & FaultSeverity.NOTICE
            assert not REDUCED_MASK & FaultSeverity.NOTICE
            for severity in (FaultSeverity.FATAL, FaultSeverity.STRICT, FaultSeverity.DEPRECATED):
                assert REDUCED_MASK & severity

        def test_fatal_warning_fails():
            classifier, output, debug, _ = _classifier()
            classifier.install()
            try:
                warnings.warn("disk on fire", FatalFault)
            finally:
                classifier.uninstall()
            assert classifier.ledger.fail_count == 1
            assert output.contains('[FAIL] A critical error has been caught: "[FATAL ERROR] disk on fire" in ')
            assert output.contains("test_faults.py line ")
            assert debug.lines == []

        def test_non_fatal_warning_is_debug_only():
            classifier, output, debug, _ = _classifier()
            classifier.install()
            try:
                warnings.warn("slow path", UserWarning)
                warnings.warn("old api", DeprecationWarning)
            finally:
                classifier.uninstall()
            counts = classifier.ledger.counts
            assert (counts.failed, counts.skipped, counts.passed) == (0, 0, 0)
            assert output.lines == []
            assert debug.count("A non-critical error has been caught") == 2
            assert debug.contains('"[WARNING] slow path"')
            assert debug.contains('"[DEPRECATED] old api"')

        def test_mask_toggle():
            classifier, _, debug, _ = _classifier(mask=REDUCED_MASK)
            assert classifier.handle_fault(FaultSeverity.NOTICE, "quiet", "x.py", 1) is False
            assert debug.lines == []
            classifier.set_mask(FULL_MASK)
            assert classifier.handle_fault(FaultSeverity.NOTICE, "loud", "x.py", 2) is True
            assert debug.contains('"[NOTICE] loud" in x.py line 2')
            classifier.set_mask(REDUCED_MASK)
            assert classifier.handle_fault(FaultSeverity.FATAL, "still counted", "x.py", 3) is True
            assert classifier.ledger.fail_count == 1

        def test_install_restores_hooks():
            original_hook = sys.excepthook
            original_show = warnings.showwarning
            classifier, _, _, _ = _classifier()
            classifier.install()
            assert classifier.installed
            assert sys.excepthook is not original_hook
            classifier.install()
            classifier.uninstall()
            classifier.uninstall()
            assert not classifier.installed
            assert sys.excepthook is original_hook
            assert warnings.showwarning is original_show

        def test_driver_errors_are_skips():
            classifier, output, _, terminate = _classifier()
            assert classifier.handle_exception(DriverCheckError("ext-foo is missing")) == 1
            classifier.handle_exception(DriverNotFoundError("no such driver"))
            classifier.handle_exception(DriverConnectError("connection refused"))
            counts = classifier.ledger.counts
            assert (counts.failed, counts.skipped, counts.passed) == (0, 3, 0)
            assert output.contains("A driver could not be initialized due to missing requirement: ext-foo is missing")
            assert output.contains(
                "A driver could not be initialized due to network/authentication issue: connection refused"
            )
            assert terminate.call_count == 3

        def test_uncaught_exception_report():
            classifier, output, _, terminate = _classifier()
            classifier.handle_exception(_raised(ValueError("bad value")))
            classifier.handle_exception(_raised(LogicError("")))
            assert classifier.ledger.fail_count == 2
            assert terminate.call_count == 2
            first, second = output.plain
            assert first.startswith('[FAIL] Uncaught exception "ValueError" in "~/tests/test_faults.py" line ')
            assert first.endswith('with message: "bad value"')
            assert '"poolprobe.core.exceptions.LogicError"' in second
            assert second.endswith(f'with message: "{NO_MESSAGE_PLACEHOLDER}"')

        def test_exception_without_traceback():
            classifier, output, _, _ = _classifier()
            classifier.classify_exception(RuntimeError("never raised"))
            assert output.contains('in "~<unknown>" line 0')

        def test_excepthook_routes_to_classifier():
            classifier, output, _, terminate = _classifier()
            classifier.install()
            try:
                exc = _raised(KeyError("missing"))
                sys.excepthook(type(exc), exc, exc.__traceback__)
            finally:
                classifier.uninstall()
            assert terminate.call_count == 1
            assert output.contains('Uncaught exception "KeyError"')

        def test_base_exception_passes_through():
            previous = MagicMock()
            with patch.object(sys, "excepthook", previous):
                classifier, output, _, terminate = _classifier()
                classifier.install()
                interrupt = KeyboardInterrupt()
                sys.excepthook(KeyboardInterrupt, interrupt, None)
                assert not classifier.installed
                assert sys.excepthook is previous
            previous.assert_called_once_with(KeyboardInterrupt, interrupt, None)
            assert terminate.call_count == 0
            assert output.lines == []

        def test_relative_path():
            classifier, _, _, _ = _classifier()
            inside = PROJECT_ROOT / "poolprobe" / "core" / "faults.py"
            assert classifier.relative_path(str(inside)) == "~/poolprobe/core/faults.py"

        def test_sibling_directory_keeps_full_path():
            with temp_directory() as tmp:
                project = tmp / "proj"
                sibling = tmp / "project2"
                project.mkdir()
                sibling.mkdir()
                outside = sibling / "x.py"
                outside.write_text("")
                nested = project / "x.py"
                nested.write_text("")
                ledger = AssertionLedger(emit=RecordingPrinter())
                classifier = FaultClassifier(ledger, RecordingPrinter(), project, MagicMock())
                assert classifier.relative_path(str(nested)) == "~/x.py"
                assert classifier.relative_path(str(outside)) == "~" + outside.resolve().as_posix()
                assert "project2" in classifier.relative_path(str(outside))

        suite.run_test(
            "Warning category mapping",
            test_category_mapping,
            test_summary="Python warning categories map onto the five fault severities",
        )
        suite.run_test("Severity masks", test_masks, test_summary="Reduced mask only drops notices")
        suite.run_test(
            "FATAL warning fails the run",
            test_fatal_warning_fails,
            test_summary="A FatalFault warning is recorded as a ledger failure with its location",
        )
        suite.run_test(
            "Non-fatal warnings are notes",
            test_non_fatal_warning_is_debug_only,
            test_summary="Other severities become debug notes without touching the ledger",
        )
        suite.run_test(
            "Mask toggle",
            test_mask_toggle,
            test_summary="Notices are dropped under the reduced mask and reported under the full mask",
        )
        suite.run_test(
            "Install and uninstall",
            test_install_restores_hooks,
            test_summary="Hooks are installed once and restored exactly",
        )
        suite.run_test(
            "Driver availability errors",
            test_driver_errors_are_skips,
            test_summary="DriverCheckError and DriverConnectError are skips followed by termination",
        )
        suite.run_test(
            "Uncaught exception report",
            test_uncaught_exception_report,
            test_summary="Qualified name, relative path, line and message or placeholder",
        )
        suite.run_test(
            "Exception without traceback",
            test_exception_without_traceback,
            test_summary="An exception that was never raised reports an unknown origin",
        )
        suite.run_test(
            "Excepthook routing",
            test_excepthook_routes_to_classifier,
            test_summary="sys.excepthook hands Exceptions to the classifier",
        )
        suite.run_test(
            "BaseException pass-through",
            test_base_exception_passes_through,
            test_summary="KeyboardInterrupt is not classified and reaches the previous hook",
        )
        suite.run_test("Relative path", test_relative_path, test_summary="Project root is replaced by ~")
        suite.run_test(
            "Sibling directory path",
            test_sibling_directory_keeps_full_path,
            test_summary="A directory sharing the project name prefix is not treated as inside it",
        )

        return suite.finish_suite()


run_comprehensive_tests = create_standard_test_runner(faults_module_tests)


def test_faults_module():
    assert faults_module_tests()


if __name__ == "__main__":
    sys.exit(0 if faults_module_tests() else 1)
