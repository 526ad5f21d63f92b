import os

from nodekeeper.args import convert, get_arg_parser


def test_args() -> None:
    arg_parser = get_arg_parser()
    arg_parser.add_argument("--region", dest="region", default=None)
    arg_parser.add_argument("--retain-versions", dest="retain_versions", type=int, default=10)
    arg_parser.add_argument("--apply", dest="apply", action="store_true", default=False)
    arg_parser.add_argument("--security-group", dest="security_groups", nargs="+", default=[])
    args = arg_parser.parse_args([])
    assert args.region is None
    assert args.retain_versions == 10
    assert args.apply is False
    assert args.not_defined is None

    os.environ["NODEKEEPER_REGION"] = "us-west-2"
    os.environ["NODEKEEPER_RETAIN_VERSIONS"] = "3"
    os.environ["NODEKEEPER_APPLY"] = "true"
    os.environ["NODEKEEPER_SECURITY_GROUP0"] = "sg-1"
    os.environ["NODEKEEPER_SECURITY_GROUP1"] = "sg-2"
    try:
        arg_parser = get_arg_parser()
        arg_parser.add_argument("--region", dest="region", default=None)
        arg_parser.add_argument("--retain-versions", dest="retain_versions", type=int, default=10)
        arg_parser.add_argument("--apply", dest="apply", action="store_true", default=False)
        arg_parser.add_argument("--security-group", dest="security_groups", nargs="+", default=[])
        args = arg_parser.parse_args([])
        assert args.region == "us-west-2"
        assert args.retain_versions == 3
        assert args.apply is True
        assert args.security_groups == ["sg-1", "sg-2"]
        # command line wins
        assert arg_parser.parse_args(["--region", "eu-central-1"]).region == "eu-central-1"
    finally:
        for name in ["REGION", "RETAIN_VERSIONS", "APPLY", "SECURITY_GROUP0", "SECURITY_GROUP1"]:
            del os.environ[f"NODEKEEPER_{name}"]


def test_convert() -> None:
    assert convert("3", int) == 3
    assert convert("yes", bool) is True
    assert convert("nope", bool) is False
    assert convert("abc", int) == "abc"
    assert convert("abc", type(None)) == "abc"
