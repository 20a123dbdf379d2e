TEST_BUCKET_NAME = "porter-test-bucket"
TEST_REGION = "us-east-1"
TEST_KMS_KEY_ID = "arn:aws:kms:us-east-1:123456789012:key/test-key"
