"""Test the ReadRHSHeader.py module."""
import io
import struct

import pytest

import rhs_testing
from IntanErrors import (
    FormatError,
    HeaderMismatchError,
    InvalidChannelTypeError,
    StringReadError,
    UnrecognizedFileError,
)
from ReadRHSHeader import (
    get_bytes_per_data_block,
    plural,
    read_header,
    read_qstring,
    verify_header_compatibility,
)


def parse(header_bytes):
    return read_header(io.BytesIO(header_bytes), print_status=False)


class TestReadHeader:
    """Test reading whole headers."""

    def test_reads_version_and_sample_rate(self):
        """Test that basic fields are decoded."""
        header = parse(rhs_testing.simple_header(version=(1, 3), sample_rate=20000.0))
        assert header["version"] == {"major": 1, "minor": 3}
        assert header["sample_rate"] == 20000.0
        assert header["num_samples_per_data_block"] == 128
        assert header["stim_step_size"] == pytest.approx(1e-6)
        assert header["frequency_parameters"]["amplifier_sample_rate"] == 20000.0

    def test_wrong_magic_number_is_rejected(self):
        """Test that a file without the RHS magic number raises."""
        header_bytes = rhs_testing.simple_header(magic_number=0x12345678)
        with pytest.raises(UnrecognizedFileError):
            parse(header_bytes)
        with pytest.raises(FormatError):
            parse(header_bytes)

    @pytest.mark.parametrize("mode, frequency", [(0, 0), (1, 50), (2, 60), (5, 0)])
    def test_notch_filter_mode(self, mode, frequency):
        """Test that the notch mode maps to its frequency in Hz."""
        header = parse(rhs_testing.simple_header(notch_mode=mode))
        assert header["notch_filter_frequency"] == frequency

    def test_notes_and_reference_channel(self):
        """Test that null and empty strings both read as empty."""
        header = parse(
            rhs_testing.simple_header(notes=("first", None, ""), reference_channel="A-001")
        )
        assert header["notes"] == {"note1": "first", "note2": "", "note3": ""}
        assert header["reference_channel"] == "A-001"

    def test_channel_lists_and_counts(self):
        """Test that channels are filed under the list for their signal type."""
        header = parse(
            rhs_testing.simple_header(
                num_amplifier=3, num_adc=2, num_dac=1, dig_in=(0, 4), dig_out=(2,)
            )
        )
        assert header["num_amplifier_channels"] == 3
        assert header["num_board_adc_channels"] == 2
        assert header["num_board_dac_channels"] == 1
        assert header["num_board_dig_in_channels"] == 2
        assert header["num_board_dig_out_channels"] == 1
        assert [ch["native_channel_name"] for ch in header["amplifier_channels"]] == [
            "A-000",
            "A-001",
            "A-002",
        ]
        assert header["amplifier_channels"][0]["port_name"] == "Port A"
        assert header["amplifier_channels"][0]["port_number"] == 1
        assert header["amplifier_channels"][0]["electrode_impedance_magnitude"] == 1000.0
        assert [ch["native_order"] for ch in header["board_dig_in_channels"]] == [0, 4]
        assert len(header["spike_triggers"]) == 3

    def test_disabled_channels_are_dropped(self):
        """Test that disabled channels and disabled groups contribute nothing."""
        groups = [
            rhs_testing.signal_group(
                "Port A",
                "A",
                [
                    rhs_testing.channel_record("A-000"),
                    rhs_testing.channel_record("A-001", native_order=1, enabled=0),
                    rhs_testing.channel_record("A-002", native_order=2),
                ],
            ),
            rhs_testing.signal_group(
                "Port B", "B", [rhs_testing.channel_record("B-000")], enabled=0
            ),
        ]
        header = parse(rhs_testing.build_header(groups))
        assert [ch["native_channel_name"] for ch in header["amplifier_channels"]] == [
            "A-000",
            "A-002",
        ]
        assert len(header["spike_triggers"]) == 2

    @pytest.mark.parametrize(
        "signal_type",
        [rhs_testing.AUX_INPUT, rhs_testing.SUPPLY_VOLTAGE, 7],
    )
    def test_invalid_channel_types_raise(self, signal_type):
        """Test that signal types RHS files cannot hold are rejected."""
        groups = [
            rhs_testing.signal_group(
                "Port A", "A", [rhs_testing.channel_record("A-000", signal_type)]
            )
        ]
        with pytest.raises(InvalidChannelTypeError):
            parse(rhs_testing.build_header(groups))

    def test_disabled_channel_with_invalid_type_is_ignored(self):
        """Test that a disabled channel is dropped before its type is checked."""
        groups = [
            rhs_testing.signal_group(
                "Port A",
                "A",
                [rhs_testing.channel_record("A-000", rhs_testing.AUX_INPUT, enabled=0)],
            )
        ]
        header = parse(rhs_testing.build_header(groups))
        assert header["num_amplifier_channels"] == 0

    def test_header_size_and_data_present(self):
        """Test that the header size is where data blocks begin."""
        header_bytes = rhs_testing.simple_header()
        header = parse(header_bytes)
        assert header["size"] == len(header_bytes)
        assert header["total_file_size"] == len(header_bytes)
        assert not header["data_present"]

        header = parse(header_bytes + rhs_testing.constant_block(0))
        assert header["size"] == len(header_bytes)
        assert header["data_present"]

    def test_prints_summary(self, capsys):
        """Test the printed header summary."""
        read_header(io.BytesIO(rhs_testing.simple_header(num_amplifier=1, num_adc=2)))
        out = capsys.readouterr().out
        assert "Reading Intan Technologies RHS2000 Data File, Version 3.0" in out
        assert "Found 1 amplifier channel." in out
        assert "Found 2 board ADC channels." in out


class TestReadQString:
    """Test reading length-prefixed strings."""

    def test_null_string(self):
        """Test that the null marker reads as an empty string."""
        assert read_qstring(io.BytesIO(struct.pack("<I", 0xFFFFFFFF))) == ""

    def test_empty_string(self):
        """Test that a zero length reads as an empty string."""
        assert read_qstring(io.BytesIO(struct.pack("<I", 0))) == ""

    def test_string_filling_the_stream(self):
        """Test that a string ending exactly at the end of the stream is read."""
        assert read_qstring(io.BytesIO(rhs_testing.qstring("Port A"))) == "Port A"

    def test_surrogate_pair(self):
        """Test that characters outside the basic plane are decoded whole."""
        assert read_qstring(io.BytesIO(rhs_testing.qstring("note \U0001F600"))) == "note \U0001F600"

    def test_lone_surrogate(self):
        """Test that an unpaired surrogate code unit is rejected."""
        with pytest.raises(StringReadError):
            read_qstring(io.BytesIO(struct.pack("<I", 2) + struct.pack("<H", 0xD800)))

    def test_lone_surrogate_in_header(self):
        """Test that an invalid channel name fails while the header is parsed."""
        bad_name = struct.pack("<I", 2) + struct.pack("<H", 0xDC00)
        channel = rhs_testing.channel_record("A-000")
        channel = bad_name + channel[len(rhs_testing.qstring("A-000")):]
        groups = [rhs_testing.signal_group("Port A", "A", [channel])]
        with pytest.raises(StringReadError):
            parse(rhs_testing.build_header(groups))

    def test_length_too_long(self):
        """Test that a length beyond the end of the stream raises."""
        with pytest.raises(StringReadError):
            read_qstring(io.BytesIO(struct.pack("<I", 10) + b"\x00" * 4))


class TestBytesPerDataBlock:
    """Test the data block size calculation."""

    def test_timestamps_only(self):
        """Test a file without any channels."""
        header = parse(rhs_testing.simple_header(num_amplifier=0))
        assert get_bytes_per_data_block(header) == 128 * 4

    def test_single_amplifier_channel(self):
        """Test that each amplifier channel also carries a stim word."""
        header = parse(rhs_testing.simple_header(num_amplifier=1))
        assert get_bytes_per_data_block(header) == 128 * 4 + 128 * 2 * 2

    def test_every_signal_kind(self):
        """Test that digital channels share one word per sample."""
        header = parse(
            rhs_testing.simple_header(
                num_amplifier=4,
                num_adc=2,
                num_dac=1,
                dig_in=(0, 3),
                dig_out=(1,),
                dc_amplifier_saved=True,
            )
        )
        # amplifier + dc amplifier + stim + adc + dac + dig in + dig out
        words = 4 + 4 + 4 + 2 + 1 + 1 + 1
        assert get_bytes_per_data_block(header) == 128 * 4 + 128 * 2 * words


class TestVerifyHeaderCompatibility:
    """Test the checks made before combining files."""

    def test_compatible_headers(self):
        """Test that non-critical differences are accepted."""
        h1 = parse(rhs_testing.simple_header(notes=("a", "", "")))
        h2 = parse(rhs_testing.simple_header(notes=("b", "", ""), notch_mode=2))
        verify_header_compatibility(h1, h2)

    def test_sample_rate_mismatch(self):
        """Test that differing sample rates raise."""
        h1 = parse(rhs_testing.simple_header(sample_rate=30000.0))
        h2 = parse(rhs_testing.simple_header(sample_rate=20000.0))
        with pytest.raises(HeaderMismatchError, match="Sample rates"):
            verify_header_compatibility(h1, h2)

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"num_amplifier": 3}, "amplifier"),
            ({"num_adc": 1}, "board ADC"),
            ({"dig_in": (0,)}, "digital input"),
        ],
    )
    def test_channel_count_mismatch(self, kwargs, message):
        """Test that differing channel counts raise."""
        h1 = parse(rhs_testing.simple_header())
        h2 = parse(rhs_testing.simple_header(**kwargs))
        with pytest.raises(HeaderMismatchError, match=message):
            verify_header_compatibility(h1, h2)

    def test_channel_name_mismatch(self):
        """Test that differing amplifier channel names raise."""
        h1 = parse(rhs_testing.simple_header(num_amplifier=1))
        groups = [
            rhs_testing.signal_group("Port B", "B", [rhs_testing.channel_record("B-000")])
        ]
        h2 = parse(rhs_testing.build_header(groups))
        with pytest.raises(HeaderMismatchError, match="names"):
            verify_header_compatibility(h1, h2)


def test_plural():
    """Test the pluralizing helper."""
    assert plural(1) == ""
    assert plural(0) == "s"
    assert plural(2) == "s"
