"""
Ecological Forecasting: Kalman Filtering

This package contains implementations of:
- A linear Gaussian Kalman filter with missing observations
- Spatially coupled state space models
- Forecast assessment metrics
"""
