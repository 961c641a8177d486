import json

from envstack import cli
from envstack.foundation.config_io import CONFIG_ENV_VAR


def _write_config(tmp_path, body: str):
    config_path = tmp_path / "envstack.yml"
    config_path.write_text(body, encoding="utf-8")
    return config_path


def test_cli_list_stages_smoke(capsys):
    rc = cli.main(["list-stages"])
    assert rc == 0

    out = capsys.readouterr().out
    assert "env.vpc" in out
    assert "provides: cluster.VpcId" in out


def test_cli_list_environments(tmp_path, capsys):
    config_path = _write_config(
        tmp_path,
        "environments:\n  - name: dev\n  - name: prod\n    provider: ec2\n",
    )

    rc = cli.main(["list-environments", "--config", str(config_path)])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == ["dev\tecs", "prod\tec2"]


def test_cli_upsert_dry_run_writes_stacks(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    config_path = _write_config(
        tmp_path,
        "namespace: mu\nrepo:\n  revision: abc1234\n  slug: acme/site\n"
        "environments:\n  - name: staging\n",
    )
    out_dir = tmp_path / "dryrun"
    log_file = tmp_path / "logs" / "upsert.log"

    rc = cli.main(
        [
            "upsert",
            "staging",
            "--config",
            str(config_path),
            "--dryrun-path",
            str(out_dir),
            "--log-file",
            str(log_file),
        ]
    )

    assert rc == 0
    assert sorted(path.name for path in out_dir.iterdir()) == [
        "mu-elb-staging.json",
        "mu-environment-staging.json",
        "mu-vpc-staging.json",
    ]
    cluster = json.loads((out_dir / "mu-environment-staging.json").read_text(encoding="utf-8"))
    assert cluster["parameters"]["LaunchType"] == "EC2"
    assert cluster["tags"]["envstack:revision"] == "abc1234"

    log_text = log_file.read_text(encoding="utf-8")
    assert "Step: pipeline/env.cluster/action" in log_text
    assert "stack(s) submitted: mu-vpc-staging, mu-elb-staging, mu-environment-staging" in log_text
    assert "Waiting for stack 'mu-vpc-staging' to complete" in log_text


def test_cli_upsert_unknown_environment_is_a_warning(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    config_path = _write_config(tmp_path, "environments:\n  - name: dev\n")
    log_file = tmp_path / "upsert.log"

    rc = cli.main(["upsert", "qa", "--config", str(config_path), "--log-file", str(log_file)])

    assert rc == 0
    log_text = log_file.read_text(encoding="utf-8")
    assert "| WARNING | Unable to find environment named 'qa' in configuration" in log_text
    assert "| ERROR |" not in log_text


def test_cli_upsert_invalid_config_fails(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    config_path = _write_config(tmp_path, "environments:\n  - name: dev\n    provider: nomad\n")
    log_file = tmp_path / "upsert.log"

    rc = cli.main(["upsert", "dev", "--config", str(config_path), "--log-file", str(log_file)])

    assert rc == 1
    assert "provider must be one of" in log_file.read_text(encoding="utf-8")
