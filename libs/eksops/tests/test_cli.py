"""Tests for the eksops CLI."""

import json
import subprocess

import pytest

from eksops.cli import create_parser, main


class TestParser:
    def test_phase_choices(self):
        args = create_parser().parse_args(["run", "-p", "image", "-p", "manifests", "--dry-run"])
        assert args.phase == ["image", "manifests"]
        assert args.dry_run is True
        assert args.workdir == ".eksops"

    def test_invalid_phase(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["plan", "-p", "deploy"])


class TestValidate:
    def test_valid(self, deploy_yaml_file, capsys):
        assert main(["-f", deploy_yaml_file, "validate"]) == 0
        out = capsys.readouterr().out
        assert "is valid" in out
        assert "docker.io/acme/bgremove-api:v1" in out

    def test_missing_file(self, tmp_path, capsys):
        assert main(["-f", str(tmp_path / "none.yaml"), "validate"]) == 1
        assert "not found" in capsys.readouterr().err

    def test_invalid(self, tmp_path, capsys):
        path = tmp_path / "deploy.yaml"
        path.write_text("cluster:\n  name: demo\n")
        assert main(["-f", str(path), "validate"]) == 1
        assert "Validation errors" in capsys.readouterr().err

    def test_finds_deploy_yaml_upward(self, deploy_yaml_file, tmp_path, monkeypatch, capsys):
        nested = tmp_path / "apps"
        nested.mkdir()
        monkeypatch.chdir(nested)
        assert main(["validate"]) == 0


class TestGenerate:
    def test_generate(self, deploy_yaml_file, tmp_path, capsys):
        out = tmp_path / "generated"
        assert main(["-f", deploy_yaml_file, "generate", "-o", str(out)]) == 0

        assert (out / "cluster.yaml").exists()
        assert (out / "Dockerfile").exists()
        assert (out / "manifests" / "bgremove-api.yaml").exists()
        assert (out / "argocd" / "application.yaml").exists()
        assert capsys.readouterr().err.count("Written:") == 4


class TestPlan:
    def test_plan_text(self, deploy_yaml_file, capsys):
        assert main(["-f", deploy_yaml_file, "plan", "-p", "image"]) == 0
        out = capsys.readouterr().out
        assert "# image" in out
        assert "$ docker push docker.io/acme/bgremove-api:v1" in out
        assert "# cluster" not in out

    def test_plan_json(self, deploy_yaml_file, capsys):
        assert main(["-f", deploy_yaml_file, "plan", "--json"]) == 0
        steps = json.loads(capsys.readouterr().out)
        assert steps[0]["phase"] == "tools"
        assert steps[-1]["name"] == "argocd-app-wait"


class TestRun:
    def test_dry_run(self, deploy_yaml_file, tmp_path, monkeypatch, capsys):
        def fail(*args, **kwargs):
            raise AssertionError("subprocess must not run in dry-run mode")

        monkeypatch.setattr("eksops.runbook.subprocess.run", fail)
        workdir = tmp_path / "work"

        code = main(["-f", deploy_yaml_file, "run", "--dry-run", "-w", str(workdir), "-p", "cluster"])

        assert code == 0
        assert (workdir / "cluster.yaml").exists()
        assert "Completed 3 steps" in capsys.readouterr().err

    def test_failure_suggests_resume(self, deploy_yaml_file, tmp_path, monkeypatch, capsys):
        def run(argv, **kwargs):
            code = 1 if argv[:2] == ["docker", "push"] else 0
            return subprocess.CompletedProcess(argv, code, stdout="", stderr="denied")

        monkeypatch.setattr("eksops.runbook.subprocess.run", run)

        code = main(["-f", deploy_yaml_file, "run", "-w", str(tmp_path), "-p", "image"])

        assert code == 1
        err = capsys.readouterr().err
        assert "push-image" in err
        assert "eksops run --start-at push-image" in err

    def test_paths_resolve_from_deploy_yaml_dir(self, deploy_yaml_file, tmp_path, monkeypatch, capsys):
        calls = []

        def run(argv, **kwargs):
            calls.append((argv, kwargs.get("cwd")))
            return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")

        monkeypatch.setattr("eksops.runbook.subprocess.run", run)
        nested = tmp_path / "apps" / "x"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        assert main(["run", "-p", "cluster", "-p", "image"]) == 0

        root = tmp_path.resolve()
        assert (root / ".eksops" / "cluster.yaml").exists()
        assert not (nested / ".eksops").exists()
        assert {cwd for _, cwd in calls} == {str(root)}
        create = calls[0][0]
        assert create[:3] == ["eksctl", "create", "cluster"]
        assert create[-1] == str(root / ".eksops" / "cluster.yaml")

    def test_unknown_start_at(self, deploy_yaml_file, tmp_path, capsys):
        code = main([
            "-f", deploy_yaml_file, "run", "--dry-run", "-w", str(tmp_path), "--start-at", "nope",
        ])
        assert code == 1
        assert "Unknown step 'nope'" in capsys.readouterr().err


class TestStatus:
    def _fake_queries(self, monkeypatch, service, app):
        def run(argv, **kwargs):
            body = service if argv[0] == "kubectl" else app
            return subprocess.CompletedProcess(argv, 0, stdout=json.dumps(body), stderr="")

        monkeypatch.setattr("eksops.runbook.subprocess.run", run)

    def test_healthy(self, deploy_yaml_file, monkeypatch, capsys):
        self._fake_queries(
            monkeypatch,
            {
                "metadata": {"name": "bgremove-api"},
                "spec": {"type": "LoadBalancer", "ports": [{"port": 80}]},
                "status": {"loadBalancer": {"ingress": [{"hostname": "lb.example.com"}]}},
            },
            {"status": {"sync": {"status": "Synced"}, "health": {"status": "Healthy"}}},
        )
        monkeypatch.setattr("eksops.cli.check_endpoint", lambda url, timeout: True)

        assert main(["-f", deploy_yaml_file, "status"]) == 0
        out = capsys.readouterr().out
        assert "Service: http://lb.example.com" in out
        assert "sync=Synced health=Healthy" in out

    def test_pending_address(self, deploy_yaml_file, monkeypatch, capsys):
        self._fake_queries(
            monkeypatch,
            {"metadata": {"name": "bgremove-api"}, "spec": {"type": "LoadBalancer"}, "status": {}},
            {"status": {"sync": {"status": "Synced"}, "health": {"status": "Progressing"}}},
        )

        assert main(["-f", deploy_yaml_file, "status"]) == 1
        out = capsys.readouterr().out
        assert "Service: <pending>" in out
        assert "pending" in out

    def test_unreachable_address(self, deploy_yaml_file, monkeypatch, capsys):
        self._fake_queries(
            monkeypatch,
            {
                "metadata": {"name": "bgremove-api"},
                "spec": {"type": "LoadBalancer", "ports": [{"port": 80}]},
                "status": {"loadBalancer": {"ingress": [{"hostname": "lb.example.com"}]}},
            },
            {"status": {"sync": {"status": "Synced"}, "health": {"status": "Healthy"}}},
        )
        monkeypatch.setattr("eksops.cli.check_endpoint", lambda url, timeout: False)

        assert main(["-f", deploy_yaml_file, "status"]) == 1
        assert "not reachable" in capsys.readouterr().out


    def test_malformed_query_output(self, deploy_yaml_file, monkeypatch, capsys):
        def run(argv, **kwargs):
            return subprocess.CompletedProcess(argv, 0, stdout="<html>not json</html>", stderr="")

        monkeypatch.setattr("eksops.runbook.subprocess.run", run)

        assert main(["-f", deploy_yaml_file, "status"]) == 1
        assert "Error: " in capsys.readouterr().err

    def test_malformed_application_output(self, deploy_yaml_file, monkeypatch, capsys):
        service = {"metadata": {"name": "bgremove-api"}, "spec": {"type": "LoadBalancer"}, "status": {}}

        def run(argv, **kwargs):
            body = json.dumps(service) if argv[0] == "kubectl" else "FATA[0000] rpc error"
            return subprocess.CompletedProcess(argv, 0, stdout=body, stderr="")

        monkeypatch.setattr("eksops.runbook.subprocess.run", run)

        assert main(["-f", deploy_yaml_file, "status"]) == 1
        assert "Application: unavailable" in capsys.readouterr().out


class TestSmoke:
    def test_smoke(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr("eksops.cli.predict_file", lambda url, src, dst, timeout: "success")
        code = main(["smoke", "--url", "http://lb", "--image", "in.png", "--out", "out.png"])
        assert code == 0
        assert "out.png: success" in capsys.readouterr().out

    def test_smoke_missing_image(self, tmp_path, capsys):
        code = main([
            "smoke", "--url", "http://lb",
            "--image", str(tmp_path / "missing.png"), "--out", str(tmp_path / "out.png"),
        ])
        assert code == 1
        assert "Image not found" in capsys.readouterr().err
