"""
Adaptive batch trigger based on recent base-fee history.
"""
from .fee_predictor import FeePredictor, PredictorPhase, fee_to_gwei
from .network import FeedForwardNetwork

__all__ = ['FeePredictor', 'PredictorPhase', 'FeedForwardNetwork', 'fee_to_gwei']
