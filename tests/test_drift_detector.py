"""
Unit tests for drift detection orchestration in the Bicep Drift Detector.
Recorded exports and listings are read from temporary files, and the Bicep
decompiler is mocked, so no Azure call or CLI is involved.
"""

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from src.config import Config
from src.drift_detector import detect_drift, run_pipeline
from src.drift_detector.baseline import build_baseline_index
from src.drift_detector.core import RemoteInputs
from src.drift_detector.types import CompileResult, ExportResult, LiveResourceSummary, Verdict
from src.main import lambda_handler

VNET_TYPE = "Microsoft.Network/virtualNetworks"
SQL_TYPE = "Microsoft.Sql/servers"
EXOTIC_TYPE = "Microsoft.Something/exotic"
RG = "/subscriptions/sub/resourceGroups/rg-app/providers"

VNET_BICEP = """resource vnetA 'Microsoft.Network/virtualNetworks@2023-04-01' = {
  name: 'vnetA'
  location: 'westeurope'
}
"""
SQL_BICEP = """resource sqlX 'Microsoft.Sql/servers@2022-05-01-preview' = {
  name: 'sqlX'
  location: 'westeurope'
}
"""


def listing_entry(name: str, resource_type: str) -> dict:
    return {
        "name": name,
        "type": resource_type,
        "id": f"{RG}/{resource_type}/{name}",
        "location": "westeurope",
    }


def compiled(text: str) -> CompileResult:
    return CompileResult(text=text)


class TestDetectDriftOffline(unittest.TestCase):
    """
    Runs detect_drift end to end on recorded inputs.
    """

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.baseline = self.root / "infra"
        (self.baseline / "existing").mkdir(parents=True)
        (self.baseline / "existing" / "vnetA.bicep").write_text(VNET_BICEP)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def record(self, export: dict, listing: list) -> Config:
        export_path = self.root / "export.json"
        listing_path = self.root / "resources.json"
        export_path.write_text(json.dumps(export))
        listing_path.write_text(json.dumps(listing))
        return Config(
            resource_group="rg-app",
            baseline_path=str(self.baseline),
            export_source=f"local://{export_path}",
            live_listing_source=str(listing_path),
            output_dir=str(self.root / "out"),
        )

    @patch("src.drift_detector.core.compile_template")
    def test_no_drift(self, mock_compile: MagicMock) -> None:
        mock_compile.return_value = compiled(VNET_BICEP)
        config = self.record({"resources": []}, [listing_entry("vnetA", VNET_TYPE)])

        result = detect_drift(config)

        self.assertFalse(result["drift_detected"])
        self.assertEqual(result["resources"]["Unchanged"], ["vnetA"])
        self.assertEqual(result["commands"], [])
        self.assertIn("timestamp", result)
        self.assertEqual(result["written_files"], [str(self.root / "out" / "drift-summary.md")])

    @patch("src.drift_detector.core.compile_template")
    def test_parameterized_export_keeps_the_real_name(self, mock_compile: MagicMock) -> None:
        parameterized = (
            "param virtualNetworks_vnetA_name string = 'vnetA'\n\n"
            "resource virtualNetworks_vnetA_name_resource 'Microsoft.Network/virtualNetworks@2023-04-01' = {\n"
            "  name: virtualNetworks_vnetA_name\n"
            "  location: 'westeurope'\n"
            "}\n"
        )
        (self.baseline / "existing" / "vnetA.bicep").write_text(parameterized)
        mock_compile.return_value = compiled(parameterized)
        config = self.record({"resources": []}, [listing_entry("vnetA", VNET_TYPE)])

        result = detect_drift(config)

        self.assertEqual(result["resources"]["Unchanged"], ["vnetA"])
        self.assertEqual(result["resources"]["Added"], [])
        self.assertEqual(result["resources"]["NotExported"], [])
        sections_with_vnet = [name for name, names in result["resources"].items() if "vnetA" in names]
        self.assertEqual(sections_with_vnet, ["Unchanged"])

    @patch("src.drift_detector.core.compile_template")
    def test_baseline_preamble_is_not_drift(self, mock_compile: MagicMock) -> None:
        (self.baseline / "existing" / "vnetA.bicep").write_text(
            "// vnet for app\ntargetScope = 'resourceGroup'\n\nparam location string = 'westeurope'\n\n" + VNET_BICEP
        )
        mock_compile.return_value = compiled(VNET_BICEP)
        config = self.record({"resources": []}, [listing_entry("vnetA", VNET_TYPE)])

        result = detect_drift(config)

        self.assertFalse(result["drift_detected"])
        self.assertEqual(result["resources"]["Unchanged"], ["vnetA"])
        self.assertEqual(result["resources"]["Changed"], [])

    @patch("src.drift_detector.core.compile_template")
    def test_unsupported_type_instances_are_all_reported(self, mock_compile: MagicMock) -> None:
        mock_compile.return_value = compiled(VNET_BICEP)
        export = {
            "template": {"resources": []},
            "error": {
                "code": "ExportTemplateCompletedWithErrors",
                "details": [
                    {
                        "code": "ExportTemplateProviderError",
                        "message": f"The schema of resource type '{EXOTIC_TYPE}' is not available.",
                        "target": f"{RG}/{EXOTIC_TYPE}/e1",
                    }
                ],
            },
        }
        listing = [listing_entry("vnetA", VNET_TYPE)] + [
            listing_entry(name, EXOTIC_TYPE) for name in ("e3", "e1", "e2")
        ]
        config = self.record(export, listing)

        result = detect_drift(config)

        self.assertTrue(result["drift_detected"])
        self.assertEqual(result["resources"]["Unsupported"], ["e1", "e2", "e3"])
        self.assertEqual(result["resources"]["Added"], ["e1", "e2", "e3"])
        self.assertEqual(result["resources"]["Unchanged"], ["vnetA"])
        self.assertEqual(result["resources"]["NotExported"], [])
        self.assertTrue(any(f"--resource-type '{EXOTIC_TYPE}'" in c for c in result["commands"]))
        self.assertEqual(len(result["diagnostics"]), 1)

    @patch("src.drift_detector.core.compile_template")
    def test_removed_changed_and_not_exported(self, mock_compile: MagicMock) -> None:
        (self.baseline / "existing" / "sqlX.bicep").write_text(SQL_BICEP)
        (self.baseline / "modules").mkdir()
        (self.baseline / "modules" / "oldVm.bicep").write_text(
            "resource oldVm 'Microsoft.Compute/virtualMachines@2023-03-01' = {\n  name: 'oldVm'\n}\n"
        )
        mock_compile.return_value = compiled(
            VNET_BICEP.replace("westeurope", "northeurope") + "\n" + SQL_BICEP
        )
        config = self.record(
            {"resources": []},
            [
                listing_entry("vnetA", VNET_TYPE),
                listing_entry("sqlX", SQL_TYPE),
                listing_entry("kv1", "Microsoft.KeyVault/vaults"),
            ],
        )
        config.report_layout = "per_resource"

        result = detect_drift(config)

        self.assertEqual(result["resources"]["Changed"], ["vnetA"])
        self.assertEqual(result["resources"]["Unchanged"], ["sqlX"])
        self.assertEqual(result["resources"]["Removed"], ["oldVm"])
        self.assertEqual(result["resources"]["NotExported"], ["kv1"])
        self.assertTrue((self.baseline / "existing" / "vnetA.drift.bicep").is_file())
        self.assertTrue((self.baseline / "modules" / "oldVm.drift.bicep").is_file())
        self.assertEqual((self.baseline / "existing" / "vnetA.bicep").read_text(), VNET_BICEP)

    @patch("src.drift_detector.core.compile_template")
    def test_skip_removed(self, mock_compile: MagicMock) -> None:
        mock_compile.return_value = compiled("")
        config = self.record({"resources": []}, [])
        config.include_removed = False
        config.write_annotations = False

        result = detect_drift(config)

        self.assertFalse(result["drift_detected"])
        self.assertEqual(result["resources"]["Removed"], [])
        self.assertEqual(result["written_files"], [])
        self.assertFalse((self.root / "out").exists())


class TestRunPipeline(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        (root / "existing").mkdir()
        (root / "existing" / "vnetA.bicep").write_text(VNET_BICEP)
        (root / "existing" / "sqlX.bicep").write_text(SQL_BICEP)
        self.baseline = build_baseline_index(root)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    @patch("src.drift_detector.core.compile_template")
    def test_single_resource_export_fills_gaps(self, mock_compile: MagicMock) -> None:
        mock_compile.side_effect = lambda raw, timeout: compiled(SQL_BICEP if "sqlX" in raw else VNET_BICEP)
        sql = LiveResourceSummary("sqlX", SQL_TYPE, f"{RG}/{SQL_TYPE}/sqlX", "westeurope")
        export_one = MagicMock(return_value='{"resources": [{"name": "sqlX"}]}')
        inputs = RemoteInputs(
            live_listing=[LiveResourceSummary("vnetA", VNET_TYPE, f"{RG}/{VNET_TYPE}/vnetA"), sql],
            export=ExportResult(template_text='{"resources": [{"name": "vnetA"}]}'),
            list_by_type=MagicMock(return_value=[]),
            export_one=export_one,
            environment="rg-app",
        )

        classification, report = run_pipeline(inputs, self.baseline)

        export_one.assert_called_once_with(sql.id)
        self.assertEqual([v.verdict for v in classification.verdicts], [Verdict.UNCHANGED, Verdict.UNCHANGED])
        self.assertFalse(report.drift_detected)

    @patch("src.drift_detector.core.compile_template")
    def test_failed_single_export_is_not_exported(self, mock_compile: MagicMock) -> None:
        mock_compile.return_value = compiled(VNET_BICEP)
        sql = LiveResourceSummary("sqlX", SQL_TYPE, f"{RG}/{SQL_TYPE}/sqlX")
        inputs = RemoteInputs(
            live_listing=[LiveResourceSummary("vnetA", VNET_TYPE, f"{RG}/{VNET_TYPE}/vnetA"), sql],
            export=ExportResult(template_text="{}"),
            list_by_type=MagicMock(return_value=[]),
            export_one=MagicMock(return_value=""),
        )

        classification, report = run_pipeline(inputs, self.baseline)

        self.assertEqual(report.sections["NotExported"], ["sqlX"])
        self.assertIn(f"Single export failed for {sql.id}", report.diagnostics)
        self.assertTrue(any("--ids" in c for c in report.commands))


class TestLambdaHandler(unittest.TestCase):
    @patch.dict(os.environ, {}, clear=True)
    def test_missing_configuration(self) -> None:
        response = lambda_handler({}, None)
        self.assertEqual(response["statusCode"], 400)
        self.assertIn("RESOURCE_GROUP", json.loads(response["body"])["message"])

    @patch.dict(
        os.environ,
        {
            "EXPORT_SOURCE": "local://export.json",
            "LIVE_LISTING_SOURCE": "local://resources.json",
            "BASELINE_PATH": "/nonexistent/baseline",
        },
        clear=True,
    )
    def test_missing_baseline(self) -> None:
        response = lambda_handler({}, None)
        self.assertEqual(response["statusCode"], 422)
        self.assertEqual(json.loads(response["body"])["error"], "Baseline error")


if __name__ == "__main__":
    unittest.main()
