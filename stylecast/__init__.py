"""stylecast: apply fast neural style or classification ONNX models to an image.

The pipeline letterboxes the image into the model's input size, encodes it
channel-planar, runs it through a cached ONNX Runtime session on CPU, and turns
the output back into a PNG data URI or a ranked list of ImageNet labels.
"""
