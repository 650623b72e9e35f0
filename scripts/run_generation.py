#!/usr/bin/env python3
"""
Standalone generation script.
Loads the draw history, generates combinations with one or every method and
optionally runs the walk-forward backtest.
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from marksix.analysis import get_follow_on_numbers, get_historical_frequency, uniformity_test
from marksix.backtester import run_backtest
from marksix.cache import AlgorithmCache
from marksix.draws import CSV_PATH, generate_synthetic_history, load_data
from marksix.filters import combination_stats, split_common
from marksix.predictor import METHODS, generate


def build_parser():
    p = argparse.ArgumentParser(description="Mark Six combination generator")
    p.add_argument("--csv", default=CSV_PATH, help=f"Draw history CSV (default: {CSV_PATH})")
    p.add_argument("--synthetic", type=int, default=0,
                   help="Use N synthetic draws instead of the CSV")
    p.add_argument("--method", choices=METHODS + ("all",), default="all")
    p.add_argument("--count", type=int, default=3, help="Combinations per method")
    p.add_argument("--selected", default="", help="Comma-separated selection pool, e.g. 1,5,12")
    p.add_argument("--lucky", type=int, default=0, help="Lucky number (0 for none)")
    p.add_argument("--double", action="store_true", help="7-number double combinations")
    p.add_argument("--seed", type=int, default=None, help="Random seed")
    p.add_argument("--backtest", type=int, default=0,
                   help="Also backtest every method over the last N draws")
    return p


def print_history_summary(df):
    print(f"\n{'='*60}")
    print("HISTORY SUMMARY")
    print(f"{'='*60}")
    print(f"  Draws: {len(df)}")
    hot = get_historical_frequency(df, "hot")[:6]
    cold = get_historical_frequency(df, "cold")[:6]
    print(f"  Hot:  {', '.join(f'{n}({c})' for n, c in hot)}")
    print(f"  Cold: {', '.join(f'{n}({c})' for n, c in cold)}")
    follow = get_follow_on_numbers(df)[:6]
    print(f"  Follow-on from last draw: {', '.join(str(n) for n, _ in follow)}")
    uniformity = uniformity_test(df)
    print(f"  Uniformity: chi2={uniformity['chi2']} p={uniformity['p_value']} "
          f"({uniformity['interpretation']})")


def print_results(method, results):
    print(f"\n{method.upper()}:")
    for r in results:
        numbers = ", ".join(f"{n:2d}" for n in r["combination"])
        stats = combination_stats(r["combination"])
        print(f"  #{r['sequence_number']}: {numbers}  "
              f"(sum {stats['sum']}, odd/even {stats['odd_even']})")
        if "split_numbers" in r:
            common = split_common(r["combination"], r["split_numbers"])
            print(f"      common {common} + split {r['split_numbers']}")
        if "confidence" in r:
            print(f"      model {r['model']}, confidence {r['confidence']:.3f}")
        if "probability" in r:
            print(f"      probability {r['probability']:.3e}")


def main(argv=None):
    args = build_parser().parse_args(argv)

    print("Loading data...")
    if args.synthetic:
        df = generate_synthetic_history(args.synthetic, seed=args.seed)
        print(f"Generated {len(df)} synthetic draws")
    else:
        df = load_data(args.csv)

    print_history_summary(df)

    selected = [int(n) for n in args.selected.split(",") if n.strip()]
    methods = METHODS if args.method == "all" else (args.method,)
    cache = AlgorithmCache()

    for method in methods:
        results = generate(
            method, df, args.count,
            selected_numbers=selected,
            lucky_number=args.lucky,
            is_double=args.double,
            rng=args.seed,
            cache=cache,
        )
        print_results(method, results)

    if args.backtest:
        run_backtest(df, methods=methods, holdout=args.backtest, rng=args.seed, verbose=True)

    print(f"\n{'='*60}")
    print("For entertainment only: no method predicts a fair draw.")
    print(f"{'='*60}")


if __name__ == "__main__":
    main()
