# gobbical

Offline tools for the Gobbi array. The array has four silicon telescopes, and
each telescope has front, back and delta-E strip detectors. The package covers
these jobs:

- **Alpha-source calibration.** Find peaks in strip spectra, fit them, and turn
  the peak positions into linear gain and offset files.
- **Spectrum handling.** A one-dimensional `Histogram` that supports rebinning,
  scaling, smoothing, background subtraction and efficiency correction.
- **Particle-identification cuts.** Graphical cut polygons and Z-line files.
- **Event-level rules.** Map boards to detectors, apply thresholds, correct for
  angle, apply the beam-shadow cut, work out particle-table indices, and compute
  time gates and excitation energies for fragment pairs.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `gobbical.histogram` | `Histogram`: equal-width bins with underflow (bin 0) and overflow (bin `nbins+1`). Methods: `fill`, `find_bin`, `bin_center`, `integral`, `rebin`, `scale`, `add`, `smooth`, `copy`, `save`, `load` (JSON files) |
| `gobbical.cuts` | `Cut` polygons with `contains`; `write_cut` / `read_cut` (a point count, then one `x y` line per point); `ZLine` sets read by `read_zlines` from the path given by `zline_path(quad)` |
| `gobbical.spectra` | `efficiency_factors`, `apply_efficiency`, `background_scale`, `subtract_background`, and `angle_deviation` returning `AngleDeviation` records |
| `gobbical.peaksearch` | `peak_search` (finds peaks where the derivative crosses a threshold), the tailed alpha line shape `alpha_peak` / `fit_alpha_peak`, `sort_with_carry`, and `peak_fit` producing one `StripCalibration` per strip. `write_front_back` writes even boards to a front file and odd boards to a back file |
| `gobbical.peakfinder` | `configure(detector, source)` builds a `SearchConfig` (histogram names, search range, output file name). `find_candidates`, `fit_peak_positions` with the Gaussian `gaus_peak`, and `format_peak_line` build the lines of a peak-position file |
| `gobbical.calibration` | `reference_energies`, `input_files`, `read_peak_files`, the weighted line fit `fit_line` (returns `LinearFit`), `calibrate_detector` (returns `StripFit` records), `write_calibration`, and the `gobbical-calibrate` command |
| `gobbical.gobbi` | `Side`, `locate_board`, `passes_threshold`, `interlaced_to_calibration`, `front_angle_correction`, `delta_angle_correction`, `in_beam_shadow`, `dee_point`, `pid_number`, the `Hit` record and the `Setup` geometry |
| `gobbical.correlations` | `Fragment` with flight distance and time, `reaction_time_difference`, `excitation_energy`, `theta_cm_degrees`, the gates `p6he_time_gate`, `p7li_time_gate`, `ta_time_gate`, `is_transverse` and `is_longitudinal` |

## Calibrating a detector

1. For each source, make a `SearchConfig` with `configure`, for example
   `configure("Front", "4peak")`. For every strip spectrum, call
   `fit_peak_positions` and then `format_peak_line`. Write the lines to the file
   named by `SearchConfig.output_name()`, for example
   `peakpositions_Front_4peak.txt`. If a strip gives the wrong number of peaks,
   its line is written as zeros.
2. Run the calibration in the directory that holds those files:

   ```
   gobbical-calibrate Front
   gobbical-calibrate Back --directory path/to/peakfiles
   ```

The detector is `Front`, `Back` or `Delta`. The command reads the files listed
by `input_files(detector)`: the 4-peak and 226Ra files, plus the beam (LiAu) file
for front and delta. It then reads 128 rows from them.

Some strips are skipped:

- a strip with a zero peak position;
- a strip with fewer than two usable peaks inside the 100–16000 channel range.

When a beam peak is present, the line is fitted through two points: the highest
226Ra line and the beam point. Otherwise all reference peaks are used.

The result goes to `<detector>Ecal.dat`. Each line of that file holds board,
channel, gain and offset in MeV.

## Using the library

```python
from gobbical.histogram import Histogram
from gobbical.spectra import background_scale, subtract_background

target = Histogram.load("ex_7li_ta_cd2.json")
carbon = Histogram.load("ex_7li_ta_c.json")

factor = background_scale(16.994, 2.736, 1.52)
clean = subtract_background(target, carbon, factor)
clean.rebin(2)
clean.save("ex_7li_ta_subtracted.json")
```

## What the package does not do

- It does not read raw data buffers from the readout electronics.
- It does not sort events into spectra. It also does not identify particles or
  compute relative energies from detector hits: `gobbical.correlations` takes
  relative energies, Q-values and fragment properties as inputs.
- Histograms are stored only as the JSON files written by `Histogram.save`.
  Spectra kept in any other format have to be converted first.
- There is no plotting. Values come back as numbers and arrays for use with the
  plotting tool of your choice.