#!/usr/bin/env python3
"""
Forecast evaluation of annual UK live births: naive vs ETS vs ARIMA.

Usage
-----
    python forecaster_births.py --help
    python forecaster_births.py --data data/births_uk.xlsx
    python forecaster_births.py --data births.csv --skip-rows 0 --horizon 8 --metric MAPE

The code is organized in births_forecaster_src/; see its package docstring
for the module layout. Defaults live in config/forecaster.yaml.
"""

if __name__ == "__main__":
    # Import and delegate to the package implementation
    try:
        from births_forecaster_src.main import main
    except ImportError as e:
        print(f"Error: Cannot import the modules: {e}")
        print("Please ensure the births_forecaster_src/ directory is present and its dependencies are installed.")
        raise SystemExit(1)
    main()
