# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
