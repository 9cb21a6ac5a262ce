"""
Watermark backfill worker package.

Streams records without processed images out of MongoDB, sends each source
image through the watermark removal service, uploads the result to S3 and
writes the public URL back onto the record using a bounded worker pool.
"""
