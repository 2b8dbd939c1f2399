"""
Layer engine for Image Studio: mask compositing, the layer store,
segmentation import and cropping.
"""
