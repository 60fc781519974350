"""Vision inference pipeline: normalize, dispatch, stream or respond."""
