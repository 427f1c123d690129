"""Test the ProcessData.py module."""
import numpy as np
import pytest

from ProcessData import (
    check_for_gaps,
    describe_wideband_filter,
    extract_digital_data,
    extract_stim_data,
    notch_filter,
    notch_filter_applies,
    process_data,
    report_gaps,
    scale_adc_dac_data,
    scale_amplifier_data,
    scale_dc_amplifier_data,
    to_unsigned,
)


def make_header(
    num_amplifier=1, notch_filter_frequency=0, major_version=3, sample_rate=1000.0
):
    return {
        "sample_rate": sample_rate,
        "version": {"major": major_version, "minor": 0},
        "notch_filter_frequency": notch_filter_frequency,
        "stim_step_size": 1e-6,
        "amplifier_channels": [
            {"native_channel_name": "A-{:03d}".format(i)} for i in range(num_amplifier)
        ],
        "board_dig_in_channels": [{"native_order": 0}, {"native_order": 3}],
        "board_dig_out_channels": [],
    }


class TestScaling:
    """Test conversion of raw words to physical units."""

    def test_to_unsigned(self):
        """Test that negative signed words become their unsigned code."""
        assert np.array_equal(to_unsigned([-200, -1, 0, 32767]), [65336, 65535, 0, 32767])

    def test_amplifier(self):
        """Test amplifier scaling to microvolts."""
        assert np.allclose(
            scale_amplifier_data(np.array([32768 - 65536, 32968 - 65536, 0])),
            [0.0, 39.0, -32768 * 0.195],
        )
        assert scale_amplifier_data(np.array([-200]))[0] == pytest.approx(
            (65336 - 32768) * 0.195
        )

    def test_dc_amplifier(self):
        """Test DC amplifier scaling to volts."""
        assert np.allclose(
            scale_dc_amplifier_data(np.array([512, 513, 0])),
            [0.0, 0.01923, -512 * 0.01923],
        )

    def test_adc_dac(self):
        """Test board ADC and DAC scaling to volts."""
        assert np.allclose(
            scale_adc_dac_data(np.array([32768 - 65536, 0, 32769 - 65536])),
            [0.0, -10.24, 0.0003125],
        )


class TestExtractStimData:
    """Test splitting stim words into their fields."""

    def test_all_fields(self):
        """Test a word with compliance limit, negative polarity and magnitude 5."""
        # 0b1000_0001_0000_0101 stored as a signed 16-bit word
        word = 0b1000000100000101 - 65536
        current, compliance, recovery, settle = extract_stim_data(
            np.array([[word, 0, 0b0110000000000011]]), 2.0
        )
        assert current[0, 0] == -10.0
        assert current[0, 1] == 0.0
        assert current[0, 2] == 6.0
        assert compliance.tolist() == [[True, False, False]]
        assert recovery.tolist() == [[False, False, True]]
        assert settle.tolist() == [[False, False, True]]
        assert compliance.dtype == bool


class TestExtractDigitalData:
    """Test extraction of digital channels from shared words."""

    def test_channel_masks(self):
        """Test that each channel reads its own bit."""
        channels = [{"native_order": 0}, {"native_order": 3}, {"native_order": 15}]
        raw = np.array([0b1001, 0b0001, 0b1000, 0, 0x8000])
        data = extract_digital_data(channels, raw)
        assert data.tolist() == [
            [1, 1, 0, 0, 0],
            [1, 0, 1, 0, 0],
            [0, 0, 0, 0, 1],
        ]


class TestTimestampGaps:
    """Test detection and reporting of gaps in timestamps."""

    def test_counts_gaps(self):
        """Test that every non-unit step counts as a gap."""
        assert check_for_gaps(np.array([0, 1, 2, 3])) == 0
        assert check_for_gaps(np.array([0, 1, 5, 6, 6])) == 2
        assert check_for_gaps(np.array([7])) == 0

    def test_warning_is_always_printed(self, capsys):
        """Test that gaps are reported even when status output is off."""
        report_gaps(3, print_status=False)
        assert "Warning: 3 gaps in timestamp data found." in capsys.readouterr().out

    def test_no_gap_message_is_gated(self, capsys):
        """Test that the all-clear message follows print_status."""
        report_gaps(0, print_status=False)
        assert capsys.readouterr().out == ""
        report_gaps(0)
        assert "No missing timestamps in data." in capsys.readouterr().out


class TestNotchFilter:
    """Test the IIR notch filter."""

    def test_removes_tone_at_notch_frequency(self):
        """Test that a 60 Hz tone is attenuated once the filter settles."""
        f_sample = 1000.0
        t = np.arange(5000) / f_sample
        tone = np.sin(2 * np.pi * 60 * t)
        out = notch_filter(tone, f_sample, 60, 10)
        assert np.max(np.abs(out[-1000:])) < 0.05

    def test_passes_other_frequencies(self):
        """Test that a tone far from the notch keeps its amplitude."""
        f_sample = 1000.0
        t = np.arange(5000) / f_sample
        tone = np.sin(2 * np.pi * 200 * t)
        out = notch_filter(tone, f_sample, 60, 10)
        assert np.max(np.abs(out[-1000:])) == pytest.approx(1.0, abs=0.05)

    def test_nyquist_notch_removes_alternating_tone(self):
        """Test that a notch at half the sample rate nulls a tone switched on after start."""
        x = np.zeros(2000)
        x[2:] = (-1.0) ** np.arange(2, 2000)
        out = notch_filter(x, 1000.0, 500, 10)
        assert np.max(np.abs(out[-500:])) < 1e-3

    def test_first_two_samples_copied(self):
        """Test the filter's initial condition."""
        x = np.array([3.0, -2.0, 1.0, 1.0])
        out = notch_filter(x, 1000.0, 60, 10)
        assert out[0] == 3.0
        assert out[1] == -2.0

    def test_short_input(self):
        """Test that fewer than three samples pass through unchanged."""
        assert notch_filter(np.array([1.0, 2.0]), 1000.0, 60, 10).tolist() == [1.0, 2.0]

    @pytest.mark.parametrize(
        "frequency, major_version, expected",
        [(60, 1, True), (50, 2, True), (60, 3, False), (0, 1, False)],
    )
    def test_notch_filter_applies(self, frequency, major_version, expected):
        """Test which headers call for a software notch filter."""
        header = make_header(notch_filter_frequency=frequency, major_version=major_version)
        assert notch_filter_applies(header) == expected

    def test_describe_wideband_filter(self):
        """Test the description of the amplifier filtering."""
        header = make_header(notch_filter_frequency=60, major_version=1)
        assert describe_wideband_filter(header) == (
            "Wideband data, filtered through a 60 Hz IIR notch filter"
        )
        assert describe_wideband_filter(header, apply_notch=False) == "Wideband data"


class TestProcessData:
    """Test processing of a whole set of raw arrays."""

    def make_raw(self, num_samples=256):
        return {
            "timestamps": np.arange(num_samples, dtype=np.int32),
            "amplifier_raw": np.full((1, num_samples), 32968 - 65536, dtype=np.int32),
            "stim_raw": np.zeros((1, num_samples), dtype=np.int32),
            "board_dig_in_raw": np.full(num_samples, 0b1000, dtype=np.int32),
        }

    def test_outputs(self):
        """Test that present kinds are scaled and absent kinds have no entry."""
        data = process_data(make_header(), self.make_raw(), print_status=False)
        assert np.allclose(data["amplifier_data"], 39.0)
        assert np.allclose(data["t"][:3], [0.0, 0.001, 0.002])
        assert data["board_dig_in_data"].tolist()[1][:2] == [1, 1]
        assert data["board_dig_in_data"].tolist()[0][:2] == [0, 0]
        assert set(data) == {
            "timestamps",
            "t",
            "amplifier_data",
            "stim_data",
            "compliance_limit_data",
            "charge_recovery_data",
            "amp_settle_data",
            "board_dig_in_data",
        }

    def test_notch_applied_for_old_versions(self):
        """Test that the header's notch filter is applied to pre-3.0 files."""
        raw = self.make_raw(1000)
        raw["amplifier_raw"] = np.round(
            np.sin(2 * np.pi * 60 * np.arange(1000) / 1000.0) * 1000
        ).astype(np.int32)[np.newaxis, :]
        header = make_header(notch_filter_frequency=60, major_version=1)

        filtered = process_data(header, raw, print_status=False)
        unfiltered = process_data(header, raw, apply_notch=False, print_status=False)
        assert not np.allclose(filtered["amplifier_data"], unfiltered["amplifier_data"])
        assert np.allclose(
            filtered["amplifier_data"][0, :2], unfiltered["amplifier_data"][0, :2]
        )

    def test_notch_skipped_for_new_versions(self):
        """Test that 3.0+ files are left as saved."""
        raw = self.make_raw()
        header = make_header(notch_filter_frequency=60, major_version=3)
        data = process_data(header, raw, print_status=False)
        assert np.allclose(data["amplifier_data"], 39.0)
