from airbnb_clean.cli import parse_args


def test_parse_args_defaults():
    args = parse_args([])
    assert args.command == "all"
    assert args.config_dir == "./config"
    assert args.overlay_config_dir is None
    assert args.strict is False


def test_parse_args_accepts_stage_and_overlay():
    args = parse_args(["clean", "--overlay-config-dir", "config/live", "--strict"])
    assert args.command == "clean"
    assert args.overlay_config_dir == "config/live"
    assert args.strict is True
