#!/usr/bin/env python3
# src/re_estimation/runner.py — concise runner

import argparse
import json
import logging
import pathlib
import re
import time
from typing import List, Optional

import numpy as np
import pandas as pd

from .simulate import simulate_ts as sim
from .estimate.orchestrator import EstimationConfig, do_all_re_estimations, load_estimation_config
from .estimate.summary import summarize_estimates


# Parser for lists like 0,30,40 or 4 0.5 1.2
def parse_float_list(s: Optional[str]) -> List[float]:
    if not s:
        return []
    return [float(x) for x in re.split(r"[,\s;]+", s.strip()) if x]


def parse_int_list(s: Optional[str]) -> List[int]:
    return [int(x) for x in parse_float_list(s)]


def parse_str_list(s: Optional[str]) -> List[str]:
    if not s:
        return []
    return [x for x in re.split(r"[,\s;]+", s.strip()) if x]


def build_parser():
    p = argparse.ArgumentParser(description="Re simulation and estimation runner")
    p.add_argument("--log-level", default="INFO", metavar="LEVEL",
                   help="Logging level (default: INFO)")
    sub = p.add_subparsers(dest="cmd", required=True)

    # ---------- simulate ----------
    sim_p = sub.add_parser("simulate", help="Simulate Re, infection and observation time series")
    sim_p.add_argument("--shift-times", type=str, default="0,30,40,50,60,80", metavar="LIST",
                       help="Anchor days of the Re trajectory (default: '0,30,40,50,60,80')")
    sim_p.add_argument("--r-levels", type=str, default="4,0.5,1.2", metavar="LIST",
                       help="Plateau Re levels (default: '4,0.5,1.2')")
    sim_p.add_argument("--smooth", action="store_true",
                       help="Smooth the piecewise Re trajectory")
    sim_p.add_argument("--timevarying", action="store_true",
                       help="Use the time-varying onset-to-count delay")
    sim_p.add_argument("--init-infection", type=str, default="1", metavar="LIST",
                       help="Initial infections (comma/space separated, default: '1')")
    sim_p.add_argument("--noise", type=str, default='{"weekly": 0.3, "gaussian": 0.1}', metavar="JSON",
                       help="Noise terms as JSON (default: weekly 0.3, gaussian 0.1)")
    sim_p.add_argument("-N", "--replicates", dest="N", type=int, default=1, metavar="N",
                       help="Number of replicates (default: 1)")
    sim_p.add_argument("--seed", type=int, default=42, metavar="SEED",
                       help="RNG seed for reproducibility (default: 42)")
    sim_p.add_argument("--out", default="data/simulated_ts.csv", metavar="PATH",
                       help="Output CSV path (default: data/simulated_ts.csv)")

    # ---------- estimate ----------
    est_p = sub.add_parser("estimate", help="Estimate Re for every stratum of an incidence CSV")
    est_p.add_argument("--incidence", required=True, metavar="PATH",
                       help="Long-form incidence CSV")
    est_p.add_argument("--interventions", default=None, metavar="PATH",
                       help="Intervention dates CSV (region, measure, type, date)")
    est_p.add_argument("--interval-ends", type=str, default="2020-04-01", metavar="LIST",
                       help="Interval end dates when no intervention table is given")
    est_p.add_argument("--additional-interval-ends", default=None, metavar="PATH",
                       help="Custom interval ends CSV (region, data_type, date)")
    est_p.add_argument("--config", default=None, metavar="PATH",
                       help="Estimation config JSON")
    est_p.add_argument("--methods", type=str, default=None, metavar="LIST",
                       help="Methods, e.g. 'Cori,WallingaTeunis'")
    est_p.add_argument("--variations", type=str, default=None, metavar="LIST",
                       help="Variation types, e.g. 'step,slidingWindow'")
    est_p.add_argument("--window", type=int, default=None, metavar="DAYS",
                       help="Sliding window length")
    est_p.add_argument("--seed", type=int, default=42, metavar="SEED")
    est_p.add_argument("--out", default="data/re_estimates.csv", metavar="PATH")

    # ---------- summarize ----------
    sum_p = sub.add_parser("summarize", help="Median over replicates of an estimates CSV")
    sum_p.add_argument("--estimates", required=True, metavar="PATH")
    sum_p.add_argument("--out", default="data/re_summary.csv", metavar="PATH")
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper()),
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    t0 = time.perf_counter()

    if args.cmd == "simulate":
        cfg = sim.SimConfig(
            shift_times=parse_float_list(args.shift_times),
            r_levels=parse_float_list(args.r_levels),
            smooth_r=args.smooth,
            timevarying=args.timevarying,
            init_infection=parse_int_list(args.init_infection),
            noise=json.loads(args.noise) if args.noise else {},
            seed=args.seed,
            n_replicates=args.N,
            out_path=args.out,
        )
        sim.write_simulations_csv(cfg)
        print("Simulation done ->", args.out)

    elif args.cmd == "estimate":
        cfg = load_estimation_config(args.config) if args.config else EstimationConfig()
        if args.methods:
            cfg.methods = parse_str_list(args.methods)
        if args.variations:
            cfg.variation_types = parse_str_list(args.variations)
        if args.window:
            cfg.sliding_window = args.window

        data = pd.read_csv(args.incidence, parse_dates=["date"])
        if args.interventions:
            interval_ends = pd.read_csv(args.interventions, dtype={"date": str})
        else:
            interval_ends = parse_str_list(args.interval_ends)
        additional = (pd.read_csv(args.additional_interval_ends)
                      if args.additional_interval_ends else None)

        results = do_all_re_estimations(data, cfg, interval_ends=interval_ends,
                                        additional_interval_ends=additional,
                                        rng=np.random.default_rng(args.seed))
        pathlib.Path(args.out).parent.mkdir(parents=True, exist_ok=True)
        results.to_csv(args.out, index=False)
        print(f"Estimates ({len(results)} rows) ->", args.out)

    elif args.cmd == "summarize":
        results = pd.read_csv(args.estimates, parse_dates=["date"])
        pathlib.Path(args.out).parent.mkdir(parents=True, exist_ok=True)
        summarize_estimates(results).to_csv(args.out, index=False)
        print("Summary ->", args.out)

    print(f"Done in {time.perf_counter() - t0:.2f}s")


if __name__ == "__main__":
    main()
