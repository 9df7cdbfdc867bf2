"""Provider that evaluates flags with a supplied Harness feature flag client."""