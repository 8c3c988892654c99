#!/usr/bin/env python3
import argparse
import csv
import os
import sys

def load_datalog(filename):
    """
    Read a datalog CSV.

    Returns (header, columns) where columns maps each numeric column name to
    its list of floats. Columns holding any non-numeric cell are left out;
    rows whose cell count does not match the header are skipped.
    """
    with open(filename, 'r', newline='') as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if not header:
            return [], {}

        values = {name: [] for name in header}
        numeric = set(header)
        for row in reader:
            if len(row) != len(header):
                continue
            for name, cell in zip(header, row):
                if name not in numeric:
                    continue
                try:
                    values[name].append(float(cell))
                except ValueError:
                    numeric.discard(name)

    columns = {name: values[name] for name in header if name in numeric}
    return header, columns

def plot_datalog(filename, output_filename=None, show=False):
    import matplotlib
    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    if not os.path.exists(filename):
        print(f"Error: {filename} not found.")
        return None

    header, columns = load_datalog(filename)
    if not header or header[0] not in columns or not columns[header[0]]:
        print("No valid data found.")
        return None

    x_name = header[0]
    times = columns[x_name]
    series = [name for name in header[1:] if name in columns]
    if not series:
        print("No numeric columns to plot.")
        return None

    fig, axes = plt.subplots(len(series), 1, figsize=(10, 2.5 * len(series)), sharex=True, squeeze=False)
    for ax, name in zip(axes[:, 0], series):
        ax.plot(times, columns[name], '-', linewidth=1.2)
        ax.set_ylabel(name)
        ax.grid(True)
    axes[0, 0].set_title(os.path.basename(filename))
    axes[-1, 0].set_xlabel(f"{x_name} (s)" if x_name == "Time" else x_name)

    plt.tight_layout()
    if output_filename is None:
        output_filename = os.path.splitext(filename)[0] + ".png"
    plt.savefig(output_filename)
    if show:
        plt.show()
    plt.close(fig)
    print(f"Plot saved to {output_filename}")
    return output_filename

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Plot every numeric column of a datalog CSV against time.")
    parser.add_argument("datalog", help="Path to the datalog CSV file")
    parser.add_argument("-o", "--output", default=None, help="PNG file to write (default: next to the CSV)")
    parser.add_argument("--show", action="store_true", help="Also open an interactive window")
    return parser.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)
    return 0 if plot_datalog(args.datalog, args.output, args.show) else 1

if __name__ == "__main__":
    sys.exit(main())
