import copy
import os
import shutil
import sys
import tempfile

import pytest

from proto_rewrite.main import RewriteOptions, main, run
from proto_rewrite.parser.proto_parser import parse_proto
from proto_rewrite.pipeline import UnknownPassError, rewrite_file, rewrite_proto_text


PROTO_CONTENT = """\
syntax = "proto3";

package device;

enum Level {
    0HIGH = 0;
    LOW = 1;
}

message Interface {
    string name = 1;
    Config config = 2;

    message Config {
        int32 mtu = 1;
        enum Speed {
            100M = 1;
            1G = 2;
        }
    }
}

message Tunnel {
    Config config = 1;

    message Config {
        int32 mtu = 1;
        enum Speed {
            100M = 1;
            1G = 2;
        }
    }
}

message Route {
    State state = 1;

    message State {
        string prefix = 1;
    }
}

message Neighbor {
    State state = 1;

    message State {
        string address = 1;
    }
}
"""

EXPECTED = """\
syntax = "proto3";

package device;

enum Level {
  NUM_0HIGH = 0;
  LOW = 1;
}

message Interface {
  string name = 1;
  Config config = 2;
}

message Tunnel {
  Config config = 1;
}

message Route {
  State state = 1;
  message State {
    string prefix = 1;
  }
}

message Neighbor {
  State state = 1;
  message State {
    string address = 1;
  }
}

message Config {
  int32 mtu = 1;
  enum Speed {
    DEFAULT = 0;
    NUM_100M = 1;
    NUM_1G = 2;
  }
}
"""


class TestPipeline:
    def test_all_passes(self):
        assert rewrite_proto_text(PROTO_CONTENT) == EXPECTED

    def test_passes_run_in_given_order(self):
        source = "enum E {\n  1A = 1;\n}\n"
        ast = rewrite_file(parse_proto(source), ["prefix-digits", "complete-zero"])
        assert [(v.name, v.index) for v in ast.enums[0].fields] == [("DEFAULT", 0), ("NUM_1A", 1)]

    def test_no_passes_round_trips(self):
        ast = parse_proto(PROTO_CONTENT)
        assert parse_proto(rewrite_proto_text(PROTO_CONTENT, [])) == ast

    def test_unknown_pass(self):
        with pytest.raises(UnknownPassError, match="flatten"):
            rewrite_file(parse_proto(PROTO_CONTENT), ["lift", "flatten"])


class TestSourceFidelity:
    def test_digit_leading_name_with_underscore(self):
        source = 'syntax = "proto3";\nenum Mode {\n  3D_MODEL = 0;\n  FLAT = 1;\n}\n'
        assert rewrite_proto_text(source) == (
            'syntax = "proto3";\n\nenum Mode {\n  NUM_3D_MODEL = 0;\n  FLAT = 1;\n}\n'
        )

    def test_missing_syntax_is_not_turned_into_proto3(self):
        source = "message M {\n  int32 a = 1;\n}\n"
        assert rewrite_proto_text(source) == source

    def test_proto2_required_field(self):
        source = 'syntax = "proto2";\n\nmessage M {\n  required int32 a = 1;\n}\n'
        assert rewrite_proto_text(source) == source

    def test_reserved_and_options_survive_rewrite(self):
        source = """\
syntax = "proto3";

import weak "legacy.proto";

enum E {
  reserved 2, 9 to 11;
  A = 1 [deprecated = true];
}

message M {
  reserved "old";
  repeated int32 a = 1 [packed = true];
}
"""
        assert rewrite_proto_text(source) == """\
syntax = "proto3";

import weak "legacy.proto";

enum E {
  reserved 2, 9 to 11;
  DEFAULT = 0;
  A = 1 [deprecated = true];
}

message M {
  reserved "old";
  repeated int32 a = 1 [packed = true];
}
"""


class TestPassInputsUntouched:
    def _check(self, passes):
        ast = parse_proto(PROTO_CONTENT)
        snapshot = copy.deepcopy(ast)
        interface = ast.messages[0]
        nested_before = interface.nested_messages

        result = rewrite_file(ast, passes)

        assert ast == snapshot
        assert interface.nested_messages is nested_before
        assert [m.name for m in interface.nested_messages] == ["Config"]
        assert [m.name for m in result.messages][-1] == "Config"

    def test_lift_after_complete_zero(self):
        self._check(("complete-zero", "lift"))

    def test_lift_after_prefix_digits(self):
        self._check(("prefix-digits", "lift"))


class TestRun:
    def setup_method(self):
        self.work_dir = tempfile.mkdtemp()
        os.makedirs(os.path.join(self.work_dir, "sub"))
        with open(os.path.join(self.work_dir, "sub", "device.proto"), "w") as fh:
            fh.write(PROTO_CONTENT)

    def teardown_method(self):
        shutil.rmtree(self.work_dir)

    def test_writes_rewritten_files(self):
        generated = run(RewriteOptions(working_path=self.work_dir))

        expected_path = os.path.join(self.work_dir, "rewritten", "sub", "device.proto")
        assert generated == [expected_path]
        with open(expected_path) as fh:
            assert fh.read() == EXPECTED

    def test_rerun_skips_output_dir(self):
        run(RewriteOptions(working_path=self.work_dir))
        generated = run(RewriteOptions(working_path=self.work_dir))
        assert len(generated) == 1

    def test_single_file_with_selected_passes(self):
        path = os.path.join(self.work_dir, "sub", "device.proto")
        out_dir = os.path.join(self.work_dir, "out")

        generated = run(RewriteOptions(working_path=path, output_dir=out_dir, passes=("complete-zero",)))

        assert generated == [os.path.join(out_dir, "device.proto")]
        with open(generated[0]) as fh:
            content = fh.read()
        assert "0HIGH = 0;" in content
        assert "NUM_" not in content
        assert "DEFAULT = 0;" in content

    def test_no_proto_files_exits(self):
        empty = tempfile.mkdtemp()
        try:
            with pytest.raises(SystemExit) as exc:
                run(RewriteOptions(working_path=empty))
            assert exc.value.code == 1
        finally:
            shutil.rmtree(empty)

    def test_parse_error_exits(self, capsys):
        with open(os.path.join(self.work_dir, "broken.proto"), "w") as fh:
            fh.write("message Broken {\n  int32 x = ;\n}\n")

        with pytest.raises(SystemExit) as exc:
            run(RewriteOptions(working_path=self.work_dir))

        assert exc.value.code == 1
        assert "FATAL:" in capsys.readouterr().err


class TestMain:
    def test_cli(self, monkeypatch, tmp_path):
        (tmp_path / "a.proto").write_text("enum E {\n  X = 1;\n}\n")
        out_dir = tmp_path / "out"
        monkeypatch.setattr(
            sys, "argv",
            ["proto-rewrite", "--working-path", str(tmp_path), "--output-dir", str(out_dir),
             "--passes", "complete-zero"],
        )

        main()

        assert "DEFAULT = 0;" in (out_dir / "a.proto").read_text()

    def test_cli_rejects_unknown_pass(self, monkeypatch, tmp_path):
        monkeypatch.setattr(
            sys, "argv",
            ["proto-rewrite", "--working-path", str(tmp_path), "--passes", "nope"],
        )

        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 2
