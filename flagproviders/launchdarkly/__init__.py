"""Provider that evaluates flags with a supplied LaunchDarkly client, and its logger interface."""