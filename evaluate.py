"""
Run the local search operators over the benchmark subjects and report coverage.

usage: sbst-evaluate --trials 5 --max-evals 2000 --out results.csv [--plot histories.png]
"""
import argparse
import logging
import os
import sys

from guidance.benchmark import SUBJECTS, plot_histories, run_benchmark, summarize


def run(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--subjects", nargs="*", choices=sorted(SUBJECTS), default=None,
                        help="subjects to run (default: all)")
    parser.add_argument("--trials", type=int, default=5)
    parser.add_argument("--max-evals", type=int, default=2000, help="evaluation budget per trial")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--out", default="benchmark_results.csv")
    parser.add_argument("--plot", default=None, help="save fitness histories to this image")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    df = run_benchmark(args.subjects, trials=args.trials, max_evaluations=args.max_evals, seed=args.seed)

    out_dir = os.path.dirname(args.out)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    df.drop(columns=["history"]).to_csv(args.out, index=False)

    summary = summarize(df)
    print("=" * 80)
    print("COVERAGE SUMMARY")
    print("=" * 80)
    print(summary.to_string(index=False))
    print("=" * 80)
    print(f"overall coverage: {df['covered'].mean():.2%} over {len(df)} runs")

    if args.plot:
        plot_histories(df, args.plot)
        print(f"histories saved to {args.plot}")

    print(f"results saved to {args.out}")
    return summary


def main(argv=None):
    run(argv)
    return 0


if __name__ == "__main__":
    sys.exit(main())
