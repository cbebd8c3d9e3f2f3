"""Tests for routing '#' lines to metadata, tables and tracks."""

import pytest

from chart_models import BGM_TRACKS, Chart
from command_dispatcher import (
    INVALID_TIME_SIGNATURE_MESSAGE,
    METADATA_FIELDS,
    TABLE_COMMANDS,
    ChartParseState,
    TrackHeader,
    ValueRule,
    dispatch_line,
    parse_float_prefix,
    parse_int_prefix,
    parse_track_header,
)
from diagnostics import MESSAGE_MAX_LEN, DiagnosticLog
from line_scanner import iter_source_lines


def _dispatch(source):
    chart = Chart()
    state = ChartParseState()
    log = DiagnosticLog()
    for source_line in iter_source_lines(source):
        dispatch_line(chart, state, log, source_line)
    return chart, log


def _messages(log):
    return [(entry.line, entry.message) for entry in log]


# ── classification ──────────────────────────────────────────────────


class TestTrackHeader:
    def test_track_line(self):
        assert parse_track_header("00111:0102") == TrackHeader(bar=1, channel=11, data="0102")

    def test_empty_data_is_still_a_track_line(self):
        assert parse_track_header("99969:") == TrackHeader(bar=999, channel=69, data="")

    @pytest.mark.parametrize("body", ["00111", "0011:01", "0A111:01", "00111 01", "TITLE x"])
    def test_not_a_track_line(self, body):
        assert parse_track_header(body) is None


class TestNumericPrefixes:
    def test_int_prefix(self):
        assert parse_int_prefix("12abc") == 12
        assert parse_int_prefix("  -3") == -3
        assert parse_int_prefix("abc") is None

    def test_float_prefix(self):
        assert parse_float_prefix("0.75") == 0.75
        assert parse_float_prefix(".5x") == 0.5
        assert parse_float_prefix("1e2") == 100.0
        assert parse_float_prefix("x1") is None

    def test_value_rule_range(self):
        rule = ValueRule("int", 1, 3)
        assert rule.parse("3") == 3
        assert rule.parse("4") is None
        assert rule.invalid_message() == "Invalid integer, should be between 1 and 3 (inclusive)"

    def test_value_rule_message_follows_kind(self):
        assert ValueRule("float", 1.0, 999.0).invalid_message() == (
            "Invalid number, should be between 1 and 999 (inclusive)"
        )
        assert ValueRule("int", 0).invalid_message() == "Invalid integer, should be at least 0"
        assert ValueRule("int", None, 9).invalid_message() == "Invalid integer, should be at most 9"
        assert ValueRule("text").invalid_message() == "Command requires non-empty arguments, ignoring"

    def test_range_messages_fit_the_log_bound(self):
        rules = [item.rule for item in METADATA_FIELDS] + [item.rule for item in TABLE_COMMANDS]
        for rule in rules:
            assert len(rule.invalid_message()) < MESSAGE_MAX_LEN
        assert len(INVALID_TIME_SIGNATURE_MESSAGE) < MESSAGE_MAX_LEN


# ── metadata ────────────────────────────────────────────────────────


class TestMetadataCommands:
    def test_assigns_fields(self):
        chart, log = _dispatch(
            "#PLAYER 1\n#GENRE Trance\n#TITLE Song\n#ARTIST Someone\n#SUBARTIST obj: x\n"
            "#BPM 150\n#PLAYLEVEL 7\n#RANK 0\n#TOTAL 300\n#DIFFICULTY 5\n"
            "#STAGEFILE stage.png\n#BANNER banner.png\n#BACKBMP back.png\n"
        )
        meta = chart.meta
        assert meta.player_num == 1
        assert meta.genre == "Trance"
        assert meta.title == "Song"
        assert meta.artist == "Someone"
        assert meta.subartist == "obj: x"
        assert meta.init_tempo == 150
        assert meta.play_level == 7
        assert meta.judge_rank == 0
        assert meta.gauge_total == 300
        assert meta.difficulty == 5
        assert meta.stage_file == "stage.png"
        assert meta.banner == "banner.png"
        assert meta.back_bmp == "back.png"
        assert len(log) == 0

    def test_text_argument_keeps_inner_spaces(self):
        chart, _log = _dispatch("#TITLE   My  Song  \n")
        assert chart.meta.title == "My  Song"

    def test_duplicate_overwrites_with_warning(self):
        chart, log = _dispatch("#TITLE Alpha\n#TITLE Beta\n")
        assert chart.meta.title == "Beta"
        assert _messages(log) == [(2, "Multiple TITLE commands, overwritten")]

    def test_out_of_range_is_rejected(self):
        chart, log = _dispatch("#PLAYER 4\n")
        assert chart.meta.player_num is None
        assert _messages(log) == [(1, "Invalid integer, should be between 1 and 3 (inclusive)")]

    def test_rejected_value_keeps_previous(self):
        chart, log = _dispatch("#RANK 2\n#RANK 9\n")
        assert chart.meta.judge_rank == 2
        assert _messages(log) == [(2, "Invalid integer, should be between 0 and 3 (inclusive)")]

    def test_unparsable_is_rejected_even_when_zero_is_in_range(self):
        chart, log = _dispatch("#RANK easy\n")
        assert chart.meta.judge_rank is None
        assert len(log) == 1

    def test_numeric_prefix_is_used(self):
        chart, log = _dispatch("#PLAYLEVEL 12 (hard)\n")
        assert chart.meta.play_level == 12
        assert len(log) == 0

    def test_empty_argument(self):
        chart, log = _dispatch("#TITLE\n#TITLE   \n")
        assert chart.meta.title is None
        assert _messages(log) == [
            (1, "Command requires non-empty arguments, ignoring"),
            (2, "Command requires non-empty arguments, ignoring"),
        ]

    def test_unrecognized_command(self):
        _chart, log = _dispatch("#RANDOM 2\n#title lower\n")
        assert _messages(log) == [
            (1, "Unrecognized command RANDOM, ignoring"),
            (2, "Unrecognized command title, ignoring"),
        ]


# ── tables ──────────────────────────────────────────────────────────


class TestTableCommands:
    def test_wav_and_bmp(self):
        chart, log = _dispatch("#WAV01 kick.wav\n#BMPZZ last.bmp\n")
        assert chart.tables.wav[1] == "kick.wav"
        assert chart.tables.bmp[1295] == "last.bmp"
        assert len(log) == 0

    def test_tempo_table_is_float(self):
        chart, _log = _dispatch("#BPM0A 120.5\n")
        assert chart.tables.tempo[10] == 120.5
        assert chart.meta.init_tempo is None

    def test_tempo_table_range(self):
        chart, log = _dispatch("#BPM01 0.5\n")
        assert chart.tables.tempo[1] is None
        assert _messages(log) == [(1, "Invalid number, should be between 1 and 999 (inclusive)")]

    def test_stop_table(self):
        chart, log = _dispatch("#STOP0Z 192\n#STOP10 40000\n")
        assert chart.tables.stop[35] == 192
        assert chart.tables.stop[36] is None
        assert _messages(log) == [(2, "Invalid integer, should be between 0 and 32767 (inclusive)")]

    def test_duplicate_slot_overwrites(self):
        chart, log = _dispatch("#WAV01 a.wav\n#WAV01 b.wav\n#WAV02 c.wav\n")
        assert chart.tables.wav[1] == "b.wav"
        assert chart.tables.wav[2] == "c.wav"
        assert _messages(log) == [(2, "Wave 01 specified multiple times, overwritten")]

    def test_invalid_index_is_an_unrecognized_command(self):
        chart, log = _dispatch("#WAV!! path.wav\n")
        assert all(slot is None for slot in chart.tables.wav)
        assert _messages(log) == [(1, "Unrecognized command WAV!!, ignoring")]

    def test_lowercase_index_is_an_unrecognized_command(self):
        chart, log = _dispatch("#WAV0a path.wav\n")
        assert all(slot is None for slot in chart.tables.wav)
        assert _messages(log) == [(1, "Unrecognized command WAV0a, ignoring")]


class TestLnobj:
    def test_sets_index(self):
        chart, log = _dispatch("#LNOBJ ZZ\n")
        assert chart.tables.lnobj == 1295
        assert len(log) == 0

    def test_duplicate(self):
        chart, log = _dispatch("#LNOBJ 0A\n#LNOBJ 0B\n")
        assert chart.tables.lnobj == 11
        assert _messages(log) == [(2, "Multiple LNOBJ commands, overwritten")]

    def test_invalid(self):
        chart, log = _dispatch("#LNOBJ !!\n#LNOBJ 1\n")
        assert chart.tables.lnobj is None
        assert _messages(log) == [
            (1, "Invalid base-36 index !!, ignoring"),
            (2, "Invalid base-36 index 1, ignoring"),
        ]


# ── tracks ──────────────────────────────────────────────────────────


class TestChannelRouting:
    def test_named_channels(self):
        chart, log = _dispatch(
            "#00103:0A\n#00104:01\n#00106:02\n#00107:03\n#00108:04\n#00109:05\n"
        )
        tracks = chart.tracks
        assert [note.value for note in tracks.tempo] == [10]
        assert [note.value for note in tracks.bga_base] == [1]
        assert [note.value for note in tracks.bga_poor] == [2]
        assert [note.value for note in tracks.bga_layer] == [3]
        assert [note.value for note in tracks.ex_tempo] == [4]
        assert [note.value for note in tracks.stop] == [5]
        assert len(log) == 0

    def test_fixed_channels(self):
        chart, _log = _dispatch("#00111:01\n#00169:02\n#00135:03\n")
        assert [note.value for note in chart.tracks.fixed[1]] == [1]
        assert [note.value for note in chart.tracks.fixed[59]] == [2]
        assert [note.value for note in chart.tracks.fixed[25]] == [3]

    @pytest.mark.parametrize("channel", ["05", "00", "10", "20", "70", "99"])
    def test_unknown_channels(self, channel):
        chart, log = _dispatch(f"#001{channel}:01\n")
        assert _messages(log) == [(1, f"Unknown track {channel}, ignoring")]
        assert all(len(track) == 0 for track in chart.tracks.fixed)

    def test_redefinition_merges(self):
        chart, log = _dispatch("#00211:01\n#00211:02\n")
        assert _messages(log) == [(2, "Track 11 already defined previously, merging all notes")]
        assert [note.value for note in chart.tracks.fixed[1]] == [1, 2]

    def test_redefinition_is_per_bar(self):
        _chart, log = _dispatch("#00111:01\n#00211:02\n")
        assert len(log) == 0

    def test_unknown_channel_redefinition_is_not_merged(self):
        _chart, log = _dispatch("#00105:01\n#00105:01\n")
        assert [entry.message for entry in log] == ["Unknown track 05, ignoring"] * 2


class TestTimeSignature:
    def test_exact(self):
        chart, log = _dispatch("#00102:0.75\n")
        assert chart.tracks.time_sig[1] == 0.75
        assert chart.tracks.time_signature(1) == 0.75
        assert chart.tracks.time_signature(2) == 1.0
        assert len(log) == 0

    def test_inaccurate_is_rounded(self):
        chart, log = _dispatch("#00102:0.8\n")
        assert chart.tracks.time_sig[1] == 0.75
        assert _messages(log) == [(1, "Inaccurate time signature, treating as 3/4")]

    def test_redefined(self):
        chart, log = _dispatch("#00102:0.5\n#00102:1.5\n")
        assert chart.tracks.time_sig[1] == 1.5
        assert _messages(log) == [(2, "Time signature for bar 001 defined multiple times, overwriting")]

    @pytest.mark.parametrize("data", ["0.1", "64", "abc", ""])
    def test_invalid(self, data):
        chart, log = _dispatch(f"#00102:{data}\n")
        assert chart.tracks.time_sig[1] is None
        assert len(log) == 1
        assert log[0].message == "Invalid time signature, should be 0.25-63.75 in steps of 0.25"


class TestBackground:
    def test_each_line_gets_a_sub_track(self):
        chart, log = _dispatch("#00101:01\n#00101:0203\n#00201:04\n")
        tracks = chart.tracks
        assert tracks.background_count == 2
        assert [(note.bar, note.value) for note in tracks.background[0]] == [(1, 1), (2, 4)]
        assert [note.value for note in tracks.background[1]] == [2, 3]
        assert len(log) == 0

    def test_overflow(self):
        source = "".join("#00101:01\n" for _ in range(BGM_TRACKS + 1))
        chart, log = _dispatch(source)
        assert chart.tracks.background_count == BGM_TRACKS
        assert all(len(track) == 1 for track in chart.tracks.background)
        assert _messages(log) == [
            (BGM_TRACKS + 1, f"Too many background tracks (more than {BGM_TRACKS}) for bar 001, ignoring"),
        ]
