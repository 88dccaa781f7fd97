from pathlib import Path

from layerrules.entrypoints import cli


def _write_net(tmp_path: Path, bias_shape: str = "[4]") -> Path:
    net_yaml = tmp_path / "net.yaml"
    net_yaml.write_text(
        f"""
name: tiny
layers:
  - name: data
    type: Data
    top: [data]
    include:
      - phase: TRAIN
  - name: ip1
    type: InnerProduct
    bottom: [data]
    top: [ip1]
    param:
      - name: w
    blob_shapes: [[4, 8]]
  - name: ip2
    type: InnerProduct
    bottom: [ip1]
    top: [ip2]
    param:
      - name: w
    blob_shapes: [[4, 8], {bias_shape}]
  - name: loss
    type: EuclideanLoss
    bottom: [ip2]
    top: [loss]
    loss_weight: [1.0]
"""
    )
    return net_yaml


def test_cli_filter(monkeypatch, tmp_path, capsys):
    net = _write_net(tmp_path)
    monkeypatch.chdir(tmp_path)
    code = cli.main(["filter", str(net.name), "--phase", "TEST"])
    out = capsys.readouterr().out
    assert code == 0
    assert "Net: tiny" in out
    assert "phase=TEST" in out
    assert "Active layers: 3/4" in out


def test_cli_filter_dumps_output(tmp_path, capsys):
    net = _write_net(tmp_path)
    output = tmp_path / "result.txt"
    cli.main(["filter", str(net), "--phase", "train", "--output", str(output)])
    assert "Active layers: 4/4" in capsys.readouterr().out
    assert "'active': True" in output.read_text()


def test_cli_validate_ok(tmp_path, capsys):
    code = cli.main(["validate", str(_write_net(tmp_path))])
    out = capsys.readouterr().out
    assert code == 0
    assert "shared 'w': ip1, ip2" in out
    assert "OK" in out


def test_cli_validate_reports_errors(tmp_path, capsys):
    net = tmp_path / "bad.yaml"
    net.write_text(
        """
layers:
  - name: loss
    top: [loss]
    loss_weight: [1.0, 0.5]
"""
    )
    code = cli.main(["--log-level", "DEBUG", "validate", str(net)])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR:" in out
    assert "loss_weight" in out


def test_cli_stage_and_level_override_net_state(tmp_path, capsys):
    net = tmp_path / "staged.yaml"
    net.write_text(
        """
name: staged
state:
  phase: TRAIN
  level: 0
  stage: [warmup]
layers:
  - name: data
    include:
      - phase: TRAIN
  - name: warmup_loss
    include:
      - stage: [warmup]
  - name: deep_head
    include:
      - min_level: 2
  - name: export
    exclude:
      - stage: [deploy]
"""
    )
    cli.main(["filter", str(net)])
    assert "Active layers: 3/4" in capsys.readouterr().out

    cli.main(["filter", str(net), "--level", "2", "--stage", "deploy"])
    out = capsys.readouterr().out
    assert "level=2" in out
    assert "stages=deploy" in out
    assert "Active layers: 2/4" in out
