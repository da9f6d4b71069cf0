# run_chart.py
import argparse
import sys

from bollinger_chart.chart_environment import ChartEnvironment
from bollinger_chart.ui_asset_viewer import launch_chart_gui


def main(argv=None):
    parser = argparse.ArgumentParser(description="Candlestick chart with Bollinger Bands overlay")
    parser.add_argument("--config", default="chart_configs/chart_config.yaml", help="YAML chart config")
    parser.add_argument("--debug", action="store_true", help="print cache/recompute diagnostics")
    args = parser.parse_args(argv)

    env = ChartEnvironment.from_yaml(args.config)
    if args.debug:
        env.debug = True
    if not env.get_asset_list():
        print(f"[ERROR] No assets configured in {args.config}")
        return 1
    print(f"[CHART] Loaded {len(env.get_asset_list())} assets, BOLL{tuple(env.params)}")
    return launch_chart_gui(env)


if __name__ == "__main__":
    sys.exit(main())
