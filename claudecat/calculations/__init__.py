"""Cost, percentile-limit and burn-rate calculations."""